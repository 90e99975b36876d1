from decimal import Decimal
from io import StringIO

import pandas as pd

import ledger
import reports
from config import TRANSACTIONS_TABLE
from models import KIND_DEBIT, KIND_TOP_UP, Transaction


def test_summary_counts_members_and_sums_balances(client, add_member):
    add_member(fname="Jane", amount=500)
    add_member(fname="John", amount=120.25)

    totals = reports.summary(client)
    assert totals.total_members == 2
    assert totals.total_balance == Decimal("620.25")


def test_summary_of_empty_store(client):
    assert reports.summary(client) == reports.Summary(0, Decimal("0"))


def test_monthly_flows_only_counts_given_year():
    txns = [
        Transaction.from_row({"id": 1, "user": "a", "amount": 100, "type": KIND_TOP_UP,
                              "created_at": "2026-01-15T09:00:00+00:00"}),
        Transaction.from_row({"id": 2, "user": "a", "amount": 40, "type": KIND_DEBIT,
                              "created_at": "2026-01-20T09:00:00Z"}),
        Transaction.from_row({"id": 3, "user": "a", "amount": 60, "type": KIND_TOP_UP,
                              "created_at": "2025-12-31T23:00:00+00:00"}),
    ]
    df = reports.monthly_flows(txns, 2026)
    assert list(df.index)[:2] == ["Jan", "Feb"]
    assert df.loc["Jan", "Top Up"] == 100
    assert df.loc["Jan", "Debit"] == 40
    assert df["Top Up"].sum() == 100


def test_report_rows_resolve_names():
    txns = [
        Transaction.from_row({"id": 9, "user": "a", "amount": 250, "type": KIND_TOP_UP,
                              "created_at": "2026-02-01T08:30:00+00:00"}),
        Transaction.from_row({"id": 8, "user": "gone", "amount": 5, "type": KIND_DEBIT, "created_at": None}),
    ]
    rows = reports.report_rows(txns, {"a": "Jane Doe"})
    assert rows[0] == ["1", "Jane Doe", "Rs 250.00", KIND_TOP_UP, "2026-02-01 08:30:00"]
    assert rows[1][:2] == ["2", "Unknown"]


def test_report_rows_format_stored_amounts(client, add_member):
    jane = add_member(fname="Jane")
    client.insert(TRANSACTIONS_TABLE, {"user": jane["id"], "amount": 1250.5, "type": KIND_TOP_UP})

    rows = reports.report_rows(ledger.list_transactions(client), ledger.member_names(client))
    assert rows[0][2] == "Rs 1,250.50"


def test_transactions_report_pdf(client, add_member):
    jane = add_member(fname="Jane")
    client.insert(TRANSACTIONS_TABLE, {"user": jane["id"], "amount": 250, "type": KIND_TOP_UP})

    pdf = reports.transactions_report_pdf(client)
    assert pdf.startswith(b"%PDF")


def test_transactions_csv(client, add_member):
    jane = add_member(fname="Jane", lname="Doe")
    client.insert(TRANSACTIONS_TABLE, {"user": jane["id"], "amount": 250, "type": KIND_TOP_UP})

    data = reports.transactions_csv(ledger.list_transactions(client), ledger.member_names(client))
    df = pd.read_csv(StringIO(data.decode("utf-8")))
    assert list(df.columns) == ["id", "user", "amount", "type", "date"]
    assert df.loc[0, "user"] == "Jane Doe"
    assert df.loc[0, "amount"] == 250
