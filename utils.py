"""
utils.py
Pagination, formatting, CSV exports, sample data.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal

import pandas as pd

from config import Config, MEMBERS_TABLE, TRANSACTIONS_TABLE, CONCERTS_TABLE, TICKETS_TABLE
from models import KIND_TOP_UP, KIND_DEBIT


def total_pages(count: int, page_size: int | None = None) -> int:
    page_size = page_size or Config.PAGE_SIZE
    return max(1, math.ceil(count / page_size))


def clamp_page(page: int, count: int, page_size: int | None = None) -> int:
    return min(max(1, page), total_pages(count, page_size))


def paginate(rows: list, page: int, page_size: int | None = None) -> list:
    """
    Slice out a 1-based page. Out of range pages are clamped to the nearest valid one.
    """
    page_size = page_size or Config.PAGE_SIZE
    page = clamp_page(page, len(rows), page_size)
    start = (page - 1) * page_size
    return rows[start:start + page_size]


def contains(haystack, needle: str) -> bool:
    return needle.strip().lower() in (haystack or "").lower()


def format_money(amount) -> str:
    return f"{Config.CURRENCY} {Decimal(str(amount)):,.2f}"


def format_timestamp(value: str | None) -> str:
    if not value:
        return ""
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def rows_to_csv_bytes(rows: list[dict], columns: list[str] | None = None) -> bytes:
    df = pd.DataFrame(rows, columns=columns)
    return df.to_csv(index=False).encode("utf-8")


def insert_sample_data(client) -> None:
    """
    Insert 3 members, a few ledger rows and one concert with tickets
    (safe to run multiple times: adds new rows each time).
    """
    stamp = datetime.now().strftime("%H%M%S%f")
    members = [
        ("Jane", "Doe", f"5{stamp[:7]}1", f"jane.{stamp}@example.com", f"J{stamp}", 500.0),
        ("John", "Smith", f"5{stamp[:7]}2", f"john.{stamp}@example.com", f"S{stamp}", 120.0),
        ("Priya", "Ramdin", f"5{stamp[:7]}3", f"priya.{stamp}@example.com", f"R{stamp}", 0.0),
    ]

    ids = []
    for fname, lname, phone, email, nic, amount in members:
        row = client.insert(
            MEMBERS_TABLE,
            {"fname": fname, "lname": lname, "phone": phone, "email": email, "nic": nic, "amount": amount},
        )
        ids.append(row["id"])

    ledger = [
        (ids[0], 500.0, KIND_TOP_UP),
        (ids[1], 200.0, KIND_TOP_UP),
        (ids[1], 80.0, KIND_DEBIT),
    ]
    for user, amount, kind in ledger:
        client.insert(TRANSACTIONS_TABLE, {"user": user, "amount": amount, "type": kind})

    concert = client.insert(CONCERTS_TABLE, {"concert_name": "Sega Night"})
    for name, price, qty in [("Standard", 500.0, 200), ("VIP", 1500.0, 40)]:
        client.insert(
            TICKETS_TABLE,
            {"concert_id": concert["id"], "ticket_name": name, "price": price, "quantity": qty},
        )
