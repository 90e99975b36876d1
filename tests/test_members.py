from urllib.parse import parse_qs, urlparse

import pytest

import cards
import members
from config import MEMBERS_TABLE
from errors import BackendError, DuplicateError, ValidationError
from models import Member


def _member(**kw):
    row = {"id": "m1", "fname": "Jane", "lname": "Doe", "phone": "57001234",
           "email": "jane@example.com", "nic": "N1", "amount": 0}
    row.update(kw)
    return Member.from_row(row)


def test_filter_members_by_first_name():
    jane, john = _member(id="1", fname="Jane"), _member(id="2", fname="John", email="john@x.io")
    assert members.filter_members([jane, john], "Jane") == [jane]


def test_filter_members_matches_last_name_and_email_case_insensitively():
    a = _member(id="1", fname="Ana", lname="Ramdin", email="ana@lodge.mu")
    b = _member(id="2", fname="Bo", lname="Smith", email="bo@mail.com")
    assert members.filter_members([a, b], "ramdin") == [a]
    assert members.filter_members([a, b], "MAIL.COM") == [b]
    assert members.filter_members([a, b], "  ") == [a, b]


def test_validate_member_form_reports_every_bad_field():
    with pytest.raises(ValidationError) as exc:
        members.validate_member_form({"phone": "12ab", "email": "not-an-email", "amount": "ten"})
    errors = exc.value.errors
    assert errors["fname"] == "First name is required."
    assert errors["lname"] == "Last name is required."
    assert errors["phone"] == "Phone number must be at least 8 digits."
    assert errors["email"] == "Invalid email format."
    assert errors["nic"] == "NIC is required."
    assert errors["amount"] == "Amount must be a number."


def test_validate_member_form_short_phone(member_form):
    member_form["phone"] = "1234567"
    with pytest.raises(ValidationError) as exc:
        members.validate_member_form(member_form)
    assert set(exc.value.errors) == {"phone"}


def test_validate_member_form_cleans_values(member_form):
    member_form["fname"] = "  Jane "
    values = members.validate_member_form(member_form)
    assert values["fname"] == "Jane"
    assert values["amount"] == 500.0


@pytest.mark.parametrize("amount", ["inf", "-inf", "1e999", "nan"])
def test_validate_member_form_rejects_non_finite_amount(member_form, amount):
    member_form["amount"] = amount
    with pytest.raises(ValidationError) as exc:
        members.validate_member_form(member_form)
    assert exc.value.errors == {"amount": "Amount must be a number."}


def test_create_member_inserts_row_with_password_and_card(client, member_form):
    result = members.create_member(client, member_form)
    member = result.member

    assert result.card_error is None
    assert member.fname == "Jane"
    assert member.amount == 500
    assert member.password and len(member.password) == 12
    assert member.card_url and "?v=" in member.card_url

    stored = client.select_one(MEMBERS_TABLE, "*", eq={"id": member.id})
    assert stored["card_url"] == member.card_url
    assert (client.storage_dir / cards.card_storage_key(member.id)).exists()


@pytest.mark.parametrize("field", ["email", "phone", "nic"])
def test_create_member_rejects_duplicates(client, member_form, field):
    members.create_member(client, member_form)

    other = {
        "fname": "John", "lname": "Smith", "email": "john@example.com",
        "phone": "57009999", "nic": "S999", "amount": "10",
    }
    other[field] = member_form[field]

    with pytest.raises(DuplicateError) as exc:
        members.create_member(client, other)
    assert set(exc.value.errors) == {field}
    assert "already exists" in exc.value.errors[field]
    assert len(client.select(MEMBERS_TABLE)) == 1


def test_create_member_keeps_row_when_card_upload_fails(client, member_form, monkeypatch):
    def broken_upload(*args, **kwargs):
        raise BackendError("storage down")

    monkeypatch.setattr(client, "upload", broken_upload)
    result = members.create_member(client, member_form)

    assert result.card_error == "storage down"
    rows = client.select(MEMBERS_TABLE)
    assert len(rows) == 1
    assert rows[0]["card_url"] is None


def test_update_member_skips_duplicate_check(client, member_form):
    created = members.create_member(client, member_form).member
    old_url = created.card_url

    member_form["lname"] = "Doe-Smith"
    result = members.update_member(client, created.id, member_form)
    assert result.member.lname == "Doe-Smith"
    assert result.member.card_url == old_url


def test_update_member_regenerates_card(client, member_form):
    created = members.create_member(client, member_form).member
    result = members.update_member(client, created.id, member_form, regenerate_card=True)
    assert result.member.card_url != created.card_url
    assert result.member.card_url.split("?")[0] == created.card_url.split("?")[0]


def test_delete_member_removes_row_and_card(client, member_form):
    member = members.create_member(client, member_form).member
    card_path = client.storage_dir / cards.card_storage_key(member.id)

    assert members.delete_member(client, member) is True
    assert client.select(MEMBERS_TABLE) == []
    assert not card_path.exists()


def test_delete_member_succeeds_when_card_removal_fails(client, member_form, monkeypatch):
    member = members.create_member(client, member_form).member

    def broken_remove(key):
        raise BackendError("permission denied")

    monkeypatch.setattr(client, "remove", broken_remove)
    assert members.delete_member(client, member) is False
    assert client.select(MEMBERS_TABLE) == []


def test_delete_member_without_card(client, add_member):
    member = Member.from_row(add_member())
    assert members.delete_member(client, member) is False
    assert client.select(MEMBERS_TABLE) == []


def test_whatsapp_number():
    assert members.whatsapp_number("57001234") == "23057001234"
    assert members.whatsapp_number("+44 20 7946 0000") == "442079460000"


def test_share_link_generates_missing_card(client, add_member):
    member = Member.from_row(add_member(phone="57001234"))
    assert member.card_url is None

    link = members.share_link(client, member)
    parsed = urlparse(link)
    assert parsed.netloc == "wa.me"
    assert parsed.path == "/23057001234"

    text = parse_qs(parsed.query)["text"][0]
    stored = client.select_one(MEMBERS_TABLE, "card_url", eq={"id": member.id})["card_url"]
    assert text.startswith("Hi Jane, your account at Native Lodge has been successfully activated.")
    assert text.endswith(stored)


def test_share_link_reuses_existing_card(client, add_member, monkeypatch):
    member = Member.from_row(add_member(card_url="https://cdn.example/cards/x.png?v=1"))

    def no_publish(*args):
        raise AssertionError("card should not be regenerated")

    monkeypatch.setattr(cards, "publish_card", no_publish)
    link = members.share_link(client, member)
    assert "https%3A%2F%2Fcdn.example%2Fcards%2Fx.png%3Fv%3D1" in link
