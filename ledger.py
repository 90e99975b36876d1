"""
ledger.py
Read-only transaction history joined against member names.
"""

from __future__ import annotations

from config import MEMBERS_TABLE, TRANSACTIONS_TABLE
from models import Transaction
from utils import contains, format_money, format_timestamp

UNKNOWN = "Unknown"


def member_names(client) -> dict[str, str]:
    rows = client.select(MEMBERS_TABLE, "id,fname,lname")
    return {str(r["id"]): f"{r.get('fname') or ''} {r.get('lname') or ''}".strip() for r in rows}


def list_transactions(client) -> list[Transaction]:
    rows = client.select(TRANSACTIONS_TABLE, "id,amount,type,created_at,user", order="created_at", ascending=False)
    return [Transaction.from_row(r) for r in rows]


def resolve_name(names: dict[str, str], member_id) -> str:
    return names.get(str(member_id)) or UNKNOWN


def filter_transactions(txns: list[Transaction], names: dict[str, str], query: str) -> list[Transaction]:
    if not query or not query.strip():
        return list(txns)
    return [t for t in txns if contains(names.get(t.user, ""), query)]


def transaction_details(txn: Transaction, names: dict[str, str]) -> dict[str, str]:
    return {
        "ID": str(txn.id),
        "User": resolve_name(names, txn.user),
        "Amount": format_money(txn.amount),
        "Type": txn.type,
        "Date": format_timestamp(txn.created_at),
    }


def ledger_rows(txns: list[Transaction], names: dict[str, str]) -> list[dict]:
    return [
        {
            "id": t.id,
            "user": resolve_name(names, t.user),
            "amount": float(t.amount),
            "type": t.type,
            "date": format_timestamp(t.created_at),
        }
        for t in txns
    ]
