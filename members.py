"""
members.py
Member directory: listing, search, validation, duplicate checks,
create/update/delete and the WhatsApp share link.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from urllib.parse import quote

import auth
import cards
from config import Config, MEMBERS_TABLE
from errors import BackendError, DuplicateError, ValidationError
from models import Member
from utils import contains

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^\d{8,}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FORM_FIELDS = ("fname", "lname", "email", "phone", "nic", "amount")
FIELD_LABELS = {
    "fname": "First Name",
    "lname": "Last Name",
    "email": "Email",
    "phone": "Phone Number",
    "nic": "NIC",
    "amount": "Amount",
}


@dataclass(frozen=True)
class MemberSaveResult:
    member: Member
    card_error: str | None = None


def list_members(client) -> list[Member]:
    rows = client.select(MEMBERS_TABLE, "*", order="created_at", ascending=False)
    return [Member.from_row(r) for r in rows]


def filter_members(members: list[Member], query: str) -> list[Member]:
    if not query or not query.strip():
        return list(members)
    return [
        m for m in members
        if contains(m.fname, query) or contains(m.lname, query) or contains(m.email, query)
    ]


def validate_member_form(form: dict) -> dict:
    """
    Check the add/edit form and return cleaned values.
    Raises ValidationError with one message per bad field.
    """
    values = {f: str(form.get(f) or "").strip() for f in FORM_FIELDS}
    errors: dict[str, str] = {}

    if not values["fname"]:
        errors["fname"] = "First name is required."
    if not values["lname"]:
        errors["lname"] = "Last name is required."

    if not values["phone"]:
        errors["phone"] = "Phone number is required."
    elif not PHONE_RE.match(values["phone"]):
        errors["phone"] = "Phone number must be at least 8 digits."

    if not values["email"]:
        errors["email"] = "Email is required."
    elif not EMAIL_RE.match(values["email"]):
        errors["email"] = "Invalid email format."

    if not values["nic"]:
        errors["nic"] = "NIC is required."

    if not values["amount"]:
        errors["amount"] = "Amount is required."
    else:
        try:
            amount = float(values["amount"])
        except ValueError:
            errors["amount"] = "Amount must be a number."
        else:
            if math.isfinite(amount):
                values["amount"] = amount
            else:
                errors["amount"] = "Amount must be a number."

    if errors:
        raise ValidationError(errors)
    return values


def find_duplicates(client, email: str, phone: str, nic: str) -> dict[str, str]:
    rows = client.select(
        MEMBERS_TABLE, "id,email,phone,nic", or_eq={"email": email, "phone": phone, "nic": nic}
    )
    errors: dict[str, str] = {}
    if any(r.get("email") == email for r in rows):
        errors["email"] = "Email already exists."
    if any(r.get("phone") == phone for r in rows):
        errors["phone"] = "Phone already exists."
    if any(r.get("nic") == nic for r in rows):
        errors["nic"] = "NIC already exists."
    return errors


def _attach_card(client, member: Member) -> MemberSaveResult:
    try:
        url = cards.publish_card(client, member)
        rows = client.update(MEMBERS_TABLE, {"card_url": url}, eq={"id": member.id})
    except BackendError as e:
        logger.error(f"Activation card for member {member.id} failed: {e}")
        return MemberSaveResult(member, card_error=str(e))
    return MemberSaveResult(Member.from_row(rows[0]) if rows else member)


def create_member(client, form: dict) -> MemberSaveResult:
    """
    Validate, reject duplicates, insert with a fresh temporary password,
    then publish the activation card and store its URL on the row.
    """
    values = validate_member_form(form)

    duplicates = find_duplicates(client, values["email"], values["phone"], values["nic"])
    if duplicates:
        raise DuplicateError(duplicates)

    values["password"] = auth.generate_password()
    member = Member.from_row(client.insert(MEMBERS_TABLE, values))
    logger.info(f"Created member {member.id} ({member.full_name})")
    return _attach_card(client, member)


def update_member(client, member_id, form: dict, regenerate_card: bool = False) -> MemberSaveResult:
    values = validate_member_form(form)
    rows = client.update(MEMBERS_TABLE, values, eq={"id": member_id})
    if not rows:
        raise BackendError(f"Member {member_id} no longer exists.")
    member = Member.from_row(rows[0])
    logger.info(f"Updated member {member.id}")
    if regenerate_card:
        return _attach_card(client, member)
    return MemberSaveResult(member)


def delete_member(client, member: Member) -> bool:
    """
    Remove the stored card (best effort), then the row.
    Returns whether the card object was removed.
    """
    card_removed = cards.remove_card(client, member.id)
    client.delete(MEMBERS_TABLE, eq={"id": member.id})
    logger.info(f"Deleted member {member.id}")
    return card_removed


def whatsapp_number(phone: str) -> str:
    phone = phone.strip()
    if not phone.startswith("+"):
        phone = f"{Config.COUNTRY_CODE}{phone}"
    return re.sub(r"\D", "", phone)


def share_message(member: Member, card_url: str) -> str:
    return (
        f"Hi {member.fname}, your account at {Config.LODGE_NAME} has been successfully activated.\n\n"
        f"View your activation card:\n{card_url}"
    )


def share_link(client, member: Member) -> str:
    """
    WhatsApp deep link with the activation message. Publishes the card first
    if the member does not have one yet.
    """
    card_url = member.card_url
    if not card_url:
        card_url = cards.publish_card(client, member)
        client.update(MEMBERS_TABLE, {"card_url": card_url}, eq={"id": member.id})
    message = share_message(member, card_url)
    return f"https://wa.me/{whatsapp_number(member.phone)}?text={quote(message, safe='')}"
