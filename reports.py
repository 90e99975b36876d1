"""
reports.py
Dashboard totals, monthly top-up/debit chart data and downloadable exports.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from decimal import Decimal

import pandas as pd
from fpdf import FPDF
from fpdf.enums import XPos, YPos

import ledger
import utils
from config import MEMBERS_TABLE
from models import KIND_TOP_UP, to_decimal

REPORT_COLUMNS = [("#", 10), ("User", 60), ("Amount", 35), ("Type", 25), ("Date", 50)]
HEADER_FILL = (50, 168, 164)


@dataclass(frozen=True)
class Summary:
    total_members: int
    total_balance: Decimal


def summary(client) -> Summary:
    rows = client.select(MEMBERS_TABLE, "amount")
    total = sum((to_decimal(r.get("amount")) for r in rows), Decimal("0"))
    return Summary(total_members=len(rows), total_balance=total)


def monthly_flows(transactions, year: int) -> pd.DataFrame:
    """
    Top-up and debit totals per calendar month of `year`.
    Anything that is not a top-up counts as a debit.
    """
    months = list(calendar.month_abbr)[1:]
    df = pd.DataFrame({"Top Up": [0.0] * 12, "Debit": [0.0] * 12}, index=months)
    for txn in transactions:
        ts = utils.parse_timestamp(txn.created_at)
        if ts is None or ts.year != year:
            continue
        column = "Top Up" if txn.type == KIND_TOP_UP else "Debit"
        df.iloc[ts.month - 1, df.columns.get_loc(column)] += float(txn.amount)
    return df


def _latin1(text) -> str:
    # Core PDF fonts only cover Latin-1
    return str(text).encode("latin-1", "replace").decode("latin-1")


def report_rows(transactions, names: dict[str, str]) -> list[list[str]]:
    return [
        [
            str(i),
            ledger.resolve_name(names, txn.user),
            utils.format_money(txn.amount),
            txn.type,
            utils.format_timestamp(txn.created_at),
        ]
        for i, txn in enumerate(transactions, start=1)
    ]


def build_transactions_pdf(transactions, names: dict[str, str]) -> bytes:
    pdf = FPDF(orientation="P", unit="mm", format="A4")
    pdf.add_page()
    pdf.set_auto_page_break(auto=True, margin=15)

    pdf.set_font("Helvetica", size=14)
    pdf.cell(0, 10, text="Transaction Report", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font("Helvetica", style="B", size=9)
    pdf.set_fill_color(*HEADER_FILL)
    pdf.set_text_color(255, 255, 255)
    for title, width in REPORT_COLUMNS:
        pdf.cell(width, 8, text=title, border=1, fill=True)
    pdf.ln()

    pdf.set_font("Helvetica", size=9)
    pdf.set_text_color(0, 0, 0)
    for row in report_rows(transactions, names):
        for value, (_, width) in zip(row, REPORT_COLUMNS):
            pdf.cell(width, 7, text=_latin1(value), border=1)
        pdf.ln()

    return bytes(pdf.output())


def transactions_report_pdf(client) -> bytes:
    """Fetch the full ledger and member names and render the PDF report."""
    transactions = ledger.list_transactions(client)
    names = ledger.member_names(client)
    return build_transactions_pdf(transactions, names)


def members_csv(members) -> bytes:
    rows = [
        {
            "id": m.id,
            "fname": m.fname,
            "lname": m.lname,
            "email": m.email,
            "phone": m.phone,
            "nic": m.nic,
            "amount": float(m.amount),
            "created_at": m.created_at,
        }
        for m in members
    ]
    return utils.rows_to_csv_bytes(rows, ["id", "fname", "lname", "email", "phone", "nic", "amount", "created_at"])


def transactions_csv(transactions, names: dict[str, str]) -> bytes:
    return utils.rows_to_csv_bytes(ledger.ledger_rows(transactions, names), ["id", "user", "amount", "type", "date"])
