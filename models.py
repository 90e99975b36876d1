"""
models.py
Lightweight domain helpers (row dataclasses, transaction kinds).
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

KIND_TOP_UP = "Top Up"
KIND_DEBIT = "Debit"
KINDS = (KIND_TOP_UP, KIND_DEBIT)


def to_decimal(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


@dataclass(frozen=True)
class Member:
    id: str
    fname: str
    lname: str
    phone: str
    email: str
    nic: str
    amount: Decimal
    password: str | None = None
    card_url: str | None = None
    created_at: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.fname} {self.lname}".strip()

    @classmethod
    def from_row(cls, row: dict) -> "Member":
        return cls(
            id=str(row["id"]),
            fname=row.get("fname") or "",
            lname=row.get("lname") or "",
            phone=row.get("phone") or "",
            email=row.get("email") or "",
            nic=row.get("nic") or "",
            amount=to_decimal(row.get("amount")),
            password=row.get("password"),
            card_url=row.get("card_url"),
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class Transaction:
    id: int | str
    user: str
    amount: Decimal
    type: str  # 'Top Up' or 'Debit'
    created_at: str | None

    @classmethod
    def from_row(cls, row: dict) -> "Transaction":
        return cls(
            id=row["id"],
            user=str(row.get("user")),
            amount=to_decimal(row.get("amount")),
            type=row.get("type") or "",
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class Ticket:
    id: int
    concert_id: int
    ticket_name: str
    price: float
    quantity: int
    concert_name: str = ""
