"""
tickets.py
Concert ticket inventory.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from config import CONCERTS_TABLE, TICKETS_TABLE
from errors import ValidationError
from models import Ticket
from utils import contains

logger = logging.getLogger(__name__)

TICKET_FIELDS = ("concert_id", "ticket_name", "price", "quantity")


def load_inventory(client) -> tuple[list[Ticket], list[dict]]:
    """
    Fetch tickets and concerts side by side and join the concert name onto
    each ticket. Either read failing raises its BackendError.
    """
    with ThreadPoolExecutor(max_workers=2) as pool:
        tickets_future = pool.submit(client.select, TICKETS_TABLE, "*", order="id")
        concerts_future = pool.submit(client.select, CONCERTS_TABLE, "id,concert_name", order="concert_name")
        ticket_rows = tickets_future.result()
        concerts = concerts_future.result()

    names = {c["id"]: c["concert_name"] for c in concerts}
    tickets = [
        Ticket(
            id=r["id"],
            concert_id=r["concert_id"],
            ticket_name=r["ticket_name"],
            price=float(r["price"]),
            quantity=int(r["quantity"]),
            concert_name=names.get(r["concert_id"], ""),
        )
        for r in ticket_rows
    ]
    return tickets, concerts


def filter_tickets(tickets: list[Ticket], query: str) -> list[Ticket]:
    if not query or not query.strip():
        return list(tickets)
    return [t for t in tickets if contains(t.concert_name, query)]


def validate_ticket_form(form: dict) -> dict:
    values = {f: str(form.get(f) if form.get(f) is not None else "").strip() for f in TICKET_FIELDS}
    if not all(values.values()):
        raise ValidationError({f: "This field is required." for f, v in values.items() if not v})

    errors: dict[str, str] = {}
    payload: dict = {"ticket_name": values["ticket_name"]}
    for field, cast in (("concert_id", int), ("price", float), ("quantity", int)):
        try:
            payload[field] = cast(values[field])
        except ValueError:
            errors[field] = "Must be a number."
    if errors:
        raise ValidationError(errors)
    return payload


def save_ticket(client, form: dict, ticket_id=None) -> dict:
    payload = validate_ticket_form(form)
    if ticket_id:
        rows = client.update(TICKETS_TABLE, payload, eq={"id": ticket_id})
        logger.info(f"Updated ticket {ticket_id}")
        return rows[0] if rows else payload
    row = client.insert(TICKETS_TABLE, payload)
    logger.info(f"Added ticket {row.get('id')}")
    return row


def delete_ticket(client, ticket_id) -> None:
    client.delete(TICKETS_TABLE, eq={"id": ticket_id})
    logger.info(f"Deleted ticket {ticket_id}")


def add_concert(client, name: str) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError({"concert_name": "Concert name is required."})
    return client.insert(CONCERTS_TABLE, {"concert_name": name})
