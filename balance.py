"""
balance.py
Top-up and debit: fresh balance read, confirmation request, then the
balance write followed by its ledger row.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from config import MEMBERS_TABLE, TRANSACTIONS_TABLE
from errors import BackendError, InsufficientBalanceError, ValidationError
from models import KIND_DEBIT, KIND_TOP_UP, KINDS, to_decimal

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class Outcome(enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"  # balance written, ledger row missing


@dataclass(frozen=True)
class BalanceRequest:
    member_id: str
    kind: str
    amount: Decimal
    current_balance: Decimal

    @property
    def new_balance(self) -> Decimal:
        if self.kind == KIND_TOP_UP:
            return (self.current_balance + self.amount).quantize(CENTS, ROUND_HALF_UP)
        return (self.current_balance - self.amount).quantize(CENTS, ROUND_HALF_UP)


@dataclass(frozen=True)
class BalanceResult:
    outcome: Outcome
    previous_balance: Decimal
    new_balance: Decimal
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


def load_roster(client) -> list[dict]:
    return client.select(MEMBERS_TABLE, "id,fname,lname", order="fname", ascending=True)


def roster_label(row: dict) -> str:
    return f"{row.get('fname', '')} {row.get('lname', '')}".strip()


def fetch_balance(client, member_id) -> Decimal:
    row = client.select_one(MEMBERS_TABLE, "amount", eq={"id": member_id})
    return to_decimal(row.get("amount"))


def parse_amount(text) -> Decimal:
    text = str(text or "").strip()
    if not text:
        raise ValidationError({"amount": "Amount is required."})
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValidationError({"amount": "Amount must be a number."})
    if not amount.is_finite() or amount <= 0:
        raise ValidationError({"amount": "Amount must be greater than 0."})
    return amount.quantize(CENTS, ROUND_HALF_UP)


def _check_funds(kind: str, amount: Decimal, balance: Decimal) -> None:
    if kind == KIND_DEBIT and amount > balance:
        raise InsufficientBalanceError(
            {"amount": f"Cannot debit {amount} with a current balance of {balance}."}
        )


def prepare(client, member_id, amount_text, kind: str) -> BalanceRequest:
    """
    Everything up to the confirmation prompt: validate input, read the
    member's balance fresh, and refuse debits larger than that balance.
    """
    if kind not in KINDS:
        raise ValueError(f"Unknown transaction kind: {kind}")
    if not member_id:
        raise ValidationError({"member": "Please select a user."})
    amount = parse_amount(amount_text)
    balance = fetch_balance(client, member_id)
    _check_funds(kind, amount, balance)
    return BalanceRequest(str(member_id), kind, amount, balance)


def commit(client, request: BalanceRequest) -> BalanceResult:
    """
    Write the new balance, then append the ledger row. The two writes are
    independent: if the second fails the balance change stays applied and
    the result is PARTIAL.
    """
    _check_funds(request.kind, request.amount, request.current_balance)
    new_balance = request.new_balance

    rows = client.update(MEMBERS_TABLE, {"amount": float(new_balance)}, eq={"id": request.member_id})
    if not rows:
        raise BackendError(f"Member {request.member_id} no longer exists.")
    logger.info(
        f"{request.kind} of {request.amount} for member {request.member_id}: "
        f"{request.current_balance} -> {new_balance}"
    )

    try:
        client.insert(
            TRANSACTIONS_TABLE,
            {"user": request.member_id, "amount": float(request.amount), "type": request.kind},
        )
    except BackendError as e:
        logger.warning(f"Balance for member {request.member_id} changed but the ledger row failed: {e}")
        return BalanceResult(Outcome.PARTIAL, request.current_balance, new_balance, error=str(e))

    return BalanceResult(Outcome.SUCCESS, request.current_balance, new_balance)


def top_up(client, member_id, amount_text) -> BalanceResult:
    return commit(client, prepare(client, member_id, amount_text, KIND_TOP_UP))


def debit(client, member_id, amount_text) -> BalanceResult:
    return commit(client, prepare(client, member_id, amount_text, KIND_DEBIT))


def resolve_scanned_member(roster: list[dict], payload: str) -> dict:
    payload = (payload or "").strip()
    for row in roster:
        if str(row["id"]) == payload:
            return row
    raise ValidationError({"member": "Scanned code does not match any user."})
