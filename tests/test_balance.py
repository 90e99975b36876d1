from decimal import Decimal

import pytest

import balance
from config import MEMBERS_TABLE, TRANSACTIONS_TABLE
from errors import BackendError, InsufficientBalanceError, ValidationError
from models import KIND_DEBIT, KIND_TOP_UP


def _balance(client, member_id):
    return client.select_one(MEMBERS_TABLE, "amount", eq={"id": member_id})["amount"]


def test_top_up_adds_amount_and_logs_one_transaction(client, add_member):
    member = add_member(amount=500)

    result = balance.top_up(client, member["id"], "250")

    assert result.ok
    assert result.previous_balance == Decimal("500")
    assert result.new_balance == Decimal("750")
    assert _balance(client, member["id"]) == 750
    txns = client.select(TRANSACTIONS_TABLE)
    assert len(txns) == 1
    assert txns[0]["type"] == KIND_TOP_UP
    assert txns[0]["amount"] == 250
    assert txns[0]["user"] == member["id"]


def test_debit_over_balance_is_rejected_before_any_write(client, add_member):
    member = add_member(amount=750)

    with pytest.raises(InsufficientBalanceError):
        balance.debit(client, member["id"], "1000")

    assert _balance(client, member["id"]) == 750
    assert client.select(TRANSACTIONS_TABLE) == []


def test_debit_within_balance(client, add_member):
    member = add_member(amount=750)

    result = balance.debit(client, member["id"], "750")

    assert result.ok
    assert result.new_balance == 0
    txns = client.select(TRANSACTIONS_TABLE)
    assert [(t["type"], t["amount"]) for t in txns] == [(KIND_DEBIT, 750)]


def test_prepare_reads_fresh_balance(client, add_member):
    member = add_member(amount=100)
    client.update(MEMBERS_TABLE, {"amount": 40}, eq={"id": member["id"]})

    request = balance.prepare(client, member["id"], "30", KIND_DEBIT)
    assert request.current_balance == Decimal("40")
    assert request.new_balance == Decimal("10.00")


def test_commit_uses_observed_balance(client, add_member):
    member = add_member(amount=100)
    request = balance.prepare(client, member["id"], "25.5", KIND_TOP_UP)

    result = balance.commit(client, request)
    assert result.new_balance == Decimal("125.50")
    assert _balance(client, member["id"]) == 125.5


def test_partial_success_when_ledger_insert_fails(client, add_member, monkeypatch):
    member = add_member(amount=500)

    def broken_insert(table, row):
        raise BackendError("ledger unavailable")

    monkeypatch.setattr(client, "insert", broken_insert)
    result = balance.top_up(client, member["id"], "100")

    assert result.outcome is balance.Outcome.PARTIAL
    assert not result.ok
    assert result.error == "ledger unavailable"
    # the balance change is kept, not rolled back
    assert _balance(client, member["id"]) == 600


def test_balance_write_failure_skips_ledger(client, add_member, monkeypatch):
    member = add_member(amount=500)

    def broken_update(table, values, eq):
        raise BackendError("write failed")

    monkeypatch.setattr(client, "update", broken_update)
    with pytest.raises(BackendError):
        balance.top_up(client, member["id"], "100")
    assert client.select(TRANSACTIONS_TABLE) == []


def test_member_deleted_before_commit_logs_nothing(client, add_member):
    member = add_member(amount=500)
    request = balance.prepare(client, member["id"], "10", KIND_TOP_UP)
    client.delete(MEMBERS_TABLE, eq={"id": member["id"]})

    with pytest.raises(BackendError):
        balance.commit(client, request)
    assert client.select(TRANSACTIONS_TABLE) == []


@pytest.mark.parametrize("text, message", [
    ("", "Amount is required."),
    ("abc", "Amount must be a number."),
    ("-5", "Amount must be greater than 0."),
    ("0", "Amount must be greater than 0."),
    ("nan", "Amount must be greater than 0."),
])
def test_parse_amount_rejects_bad_input(text, message):
    with pytest.raises(ValidationError) as exc:
        balance.parse_amount(text)
    assert exc.value.errors == {"amount": message}


def test_prepare_requires_member(client):
    with pytest.raises(ValidationError) as exc:
        balance.prepare(client, "", "10", KIND_TOP_UP)
    assert "member" in exc.value.errors


def test_roster_is_sorted_by_first_name(client, add_member):
    add_member(fname="Zoe")
    add_member(fname="Amir")
    assert [r["fname"] for r in balance.load_roster(client)] == ["Amir", "Zoe"]


def test_resolve_scanned_member():
    roster = [{"id": "a1", "fname": "Jane", "lname": "Doe"}]
    assert balance.resolve_scanned_member(roster, " a1 ")["fname"] == "Jane"
    with pytest.raises(ValidationError):
        balance.resolve_scanned_member(roster, "zz")
