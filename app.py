"""
app.py
Streamlit admin dashboard for the Native Lodge members ledger.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable

import pandas as pd
import streamlit as st
from PIL import Image

import auth
import balance
import ledger
import members
import reports
import tickets
import utils
from backend import get_backend
from config import Config
from errors import BackendError, InsufficientBalanceError, ValidationError
from models import KIND_DEBIT, KIND_TOP_UP
from scanner import CameraDevice, QRScanner, ScannerError

logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

st.set_page_config(page_title=f"{Config.LODGE_NAME} Admin", layout="wide")


@dataclass(frozen=True)
class Page:
    title: str
    icon: str
    render: Callable[["Page"], None]


def get_client():
    if "client" not in st.session_state:
        st.session_state.client = get_backend()
    return st.session_state.client


def init_state():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    auth.logout(get_client())
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


def login_screen():
    st.title(f"🔐 {Config.LODGE_NAME} Login")
    client = get_client()

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Email / Username", value="admin" if client.name == "local" else "")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(client, username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                logger.info(f"{st.session_state.username} logged in ({client.name} backend)")
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        if client.name == "local":
            st.info(
                "Local mode creates a default admin on first run:\n\n"
                "- username: **admin**\n"
                "- password: **admin123**\n\n"
                "You will be forced to change it on first login."
            )
        else:
            st.info("Sign in with your Supabase operator account.")


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        if len(new1) < 6:
            st.error("Password must be at least 6 characters.")
            return
        if new1 != new2:
            st.error("Passwords do not match.")
            return
        auth.change_password(get_client(), st.session_state.username, new1)
        st.success("Password updated. You can continue.")
        st.rerun()


# ---------- Shared widgets ----------

def field_errors(errors: dict, field: str):
    if errors.get(field):
        st.caption(f":red[{errors[field]}]")


def pager(key: str, count: int) -> int:
    pages = utils.total_pages(count)
    page = utils.clamp_page(st.session_state.get(key, 1), count)
    c1, c2, c3 = st.columns([1, 2, 1])
    with c1:
        if st.button("Prev", key=f"{key}_prev", disabled=page <= 1):
            page -= 1
    with c3:
        if st.button("Next", key=f"{key}_next", disabled=page >= pages):
            page += 1
    with c2:
        st.caption(f"Page {page} of {pages}")
    st.session_state[key] = page
    return page


# ---------- Dashboard ----------

def dashboard_page(page: Page):
    st.header(f"{page.icon} {page.title}")
    client = get_client()

    try:
        totals = reports.summary(client)
        txns = ledger.list_transactions(client)
    except BackendError:
        st.error("Could not load dashboard data.")
        return

    c1, c2 = st.columns(2)
    c1.metric("Total Users", totals.total_members)
    c2.metric("Total Amount in System", utils.format_money(totals.total_balance))

    st.divider()

    year = date.today().year
    flows = reports.monthly_flows(txns, year)
    st.subheader(f"Top-ups vs debits ({year})")
    st.caption(
        f"Total Top-Ups: {utils.format_money(flows['Top Up'].sum())} | "
        f"Total Debits: {utils.format_money(flows['Debit'].sum())}"
    )
    st.area_chart(flows, color=["#28a745", "#dc3545"])

    st.divider()

    st.subheader("Exports")
    if st.button("Export transactions (PDF)"):
        try:
            st.session_state.report_pdf = reports.transactions_report_pdf(client)
        except BackendError:
            st.error("Failed to export transactions.")
    if st.session_state.get("report_pdf"):
        st.download_button(
            "Download transaction_report.pdf",
            data=st.session_state.report_pdf,
            file_name="transaction_report.pdf",
            mime="application/pdf",
        )

    try:
        names = ledger.member_names(client)
        member_rows = members.list_members(client)
    except BackendError:
        st.error("Could not load user info.")
        return
    c1, c2 = st.columns(2)
    with c1:
        st.download_button(
            "Download users.csv",
            data=reports.members_csv(member_rows),
            file_name="users.csv",
            mime="text/csv",
        )
    with c2:
        st.download_button(
            "Download transactions.csv",
            data=reports.transactions_csv(txns, names),
            file_name="transactions.csv",
            mime="text/csv",
        )


# ---------- Users ----------

def member_form(existing=None):
    client = get_client()
    errors = st.session_state.get("member_errors", {})

    st.subheader(f"✏️ Edit User ({existing.full_name})" if existing else "➕ Add User")
    with st.form("member_form", clear_on_submit=False):
        form = {}
        defaults = {
            "fname": existing.fname if existing else "",
            "lname": existing.lname if existing else "",
            "email": existing.email if existing else "",
            "phone": existing.phone if existing else "",
            "nic": existing.nic if existing else "",
            "amount": str(existing.amount) if existing else "",
        }
        for field in members.FORM_FIELDS:
            form[field] = st.text_input(members.FIELD_LABELS[field], value=defaults[field])
            field_errors(errors, field)
        regenerate = st.checkbox("Regenerate activation card", value=False) if existing else False
        submitted = st.form_submit_button("Update" if existing else "Add", type="primary")

    if not submitted:
        return

    try:
        if existing:
            result = members.update_member(client, existing.id, form, regenerate_card=regenerate)
            st.session_state.flash = ("success", "User updated successfully.")
        else:
            result = members.create_member(client, form)
            st.session_state.flash = ("success", "User added successfully.")
    except ValidationError as e:
        st.session_state.member_errors = e.errors
        st.rerun()
    except BackendError:
        st.error("Failed to save user.")
        return

    if result.card_error:
        st.session_state.flash = ("warning", "User saved, but the activation card could not be generated.")
    st.session_state.member_errors = {}
    st.session_state.edit_member_id = None
    st.rerun()


def show_flash():
    flash = st.session_state.pop("flash", None)
    if flash:
        kind, message = flash
        getattr(st, kind)(message)


def members_page(page: Page):
    st.header(f"{page.icon} {page.title}")
    show_flash()
    client = get_client()

    try:
        rows = members.list_members(client)
    except BackendError:
        st.error("Could not load users.")
        return

    search = st.text_input("Search by name or email", key="member_search")
    filtered = members.filter_members(rows, search)
    current = pager("member_page", len(filtered))
    shown = utils.paginate(filtered, current)

    if shown:
        df = pd.DataFrame(
            [
                {
                    "First Name": m.fname,
                    "Last Name": m.lname,
                    "Email": m.email,
                    "Phone": m.phone,
                    "NIC Number": m.nic,
                    "Amount": float(m.amount),
                }
                for m in shown
            ]
        )
        st.dataframe(df, use_container_width=True, hide_index=True)
    else:
        st.caption("No users found.")

    st.divider()

    by_id = {m.id: m for m in filtered}
    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select user")
        selected_id = st.selectbox(
            "User",
            options=[""] + list(by_id),
            format_func=lambda i: "(none)" if not i else f"{by_id[i].full_name} ({by_id[i].email})",
        )

    with colB:
        if selected_id:
            member = by_id[selected_id]
            st.subheader("User actions")
            c1, c2, c3 = st.columns(3)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_member_id = member.id
                    st.session_state.member_errors = {}
                    st.rerun()
            with c2:
                if st.button("Share on WhatsApp"):
                    try:
                        st.session_state.share_link = (member.id, members.share_link(client, member))
                    except BackendError:
                        st.error("Could not prepare the activation card.")
                shared = st.session_state.get("share_link")
                if shared and shared[0] == member.id:
                    st.link_button(f"Send WhatsApp to {member.fname}", shared[1])
            with c3:
                delete_confirm = st.checkbox(f"Confirm delete of {member.full_name}", value=False, key="del_confirm")
                if st.button("Delete", type="secondary", disabled=not delete_confirm):
                    try:
                        members.delete_member(client, member)
                    except BackendError:
                        st.error("Failed to delete user.")
                    else:
                        st.session_state.flash = ("success", "User deleted.")
                        st.session_state.pop("share_link", None)
                        st.rerun()

    st.divider()

    if st.session_state.get("edit_member_id"):
        existing = next((m for m in rows if m.id == st.session_state.edit_member_id), None)
        if existing:
            member_form(existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_member_id = None
            st.session_state.member_errors = {}
            st.rerun()
    else:
        member_form(existing=None)


# ---------- Top Up / Debit ----------

class StreamlitCamera:
    """Camera source backed by st.camera_input (the browser picks the device)."""

    def list_devices(self) -> list[CameraDevice]:
        return [CameraDevice("browser", "Browser camera")]

    def start(self, device_id: str) -> None:
        st.session_state.camera_on = True

    def stop(self) -> None:
        st.session_state.camera_on = False


def scan_section(roster: list[dict], select_key: str):
    if "scanner" not in st.session_state:
        def on_decoded(payload: str):
            st.session_state.scanned_payload = payload

        st.session_state.scanner = QRScanner(StreamlitCamera(), on_decoded)
    scanner: QRScanner = st.session_state.scanner

    payload = st.session_state.pop("scanned_payload", None)
    if payload:
        try:
            row = balance.resolve_scanned_member(roster, payload)
        except ValidationError as e:
            st.error(e.errors["member"])
        else:
            st.session_state[select_key] = str(row["id"])

    c1, c2 = st.columns(2)
    with c1:
        start = st.button("Scan QR", disabled=scanner.active)
    with c2:
        restart = st.button("Rescan")
    try:
        if start:
            scanner.start()
        elif restart:
            scanner.rescan()
    except ScannerError as e:
        st.error(str(e))

    if scanner.active:
        photo = st.camera_input(
            "Point the camera at the member's activation card",
            key=f"scan_frame_{scanner.session}",
        )
        if photo is not None:
            if scanner.feed_frame(Image.open(photo)):
                st.rerun()
            st.warning("No QR code found. Try again.")
        if st.button("Stop camera"):
            scanner.stop()
            st.rerun()


def balance_page(kind: str, with_scanner: bool = False):
    verb = "Top-Up" if kind == KIND_TOP_UP else "Debit"
    select_key = f"{kind}_member"
    pending_key = f"{kind}_pending"
    amount_key = f"{kind}_amount"

    def render(page: Page):
        st.header(f"{page.icon} {page.title}")
        if st.session_state.pop(f"{kind}_reset", False):
            st.session_state[select_key] = ""
            st.session_state[amount_key] = ""

        show_flash()
        client = get_client()

        try:
            roster = balance.load_roster(client)
        except BackendError:
            st.error("Could not fetch users")
            return

        if with_scanner:
            scan_section(roster, select_key)

        labels = {str(r["id"]): balance.roster_label(r) for r in roster}
        member_id = st.selectbox(
            "Select User",
            options=[""] + list(labels),
            format_func=lambda i: "-- Select a user --" if not i else labels[i],
            key=select_key,
        )

        if member_id:
            try:
                current = balance.fetch_balance(client, member_id)
                st.caption(f"Current Balance: {utils.format_money(current)}")
            except BackendError:
                st.warning("Could not fetch the current balance.")

        amount = st.text_input(f"{verb} Amount", key=amount_key)

        if st.button(verb, type="primary"):
            try:
                st.session_state[pending_key] = balance.prepare(client, member_id, amount, kind)
            except InsufficientBalanceError:
                st.error("Insufficient Balance: cannot debit more than current balance.")
            except ValidationError as e:
                for message in e.errors.values():
                    st.warning(message)
            except BackendError:
                st.error("Could not fetch the current balance.")

        request = st.session_state.get(pending_key)
        if request is not None and request.member_id == member_id:
            st.info(
                f"Confirm {verb}: **{request.amount}** for {labels.get(request.member_id, request.member_id)}. "
                f"Current Balance: **{request.current_balance}**"
            )
            c1, c2 = st.columns(2)
            with c1:
                if st.button(f"Yes, {verb}", type="primary"):
                    st.session_state.pop(pending_key, None)
                    try:
                        result = balance.commit(client, request)
                    except InsufficientBalanceError:
                        st.error("Insufficient Balance: cannot debit more than current balance.")
                        return
                    except BackendError:
                        st.error(f"Failed to {verb.lower()} user.")
                        return
                    if result.ok:
                        st.session_state.flash = (
                            "success", f"{verb} succeeded. New balance: {utils.format_money(result.new_balance)}"
                        )
                        st.session_state[f"{kind}_reset"] = True
                    else:
                        st.session_state.flash = (
                            "warning", f"Partial Success: {verb} succeeded but transaction log failed."
                        )
                    st.rerun()
            with c2:
                if st.button("Cancel"):
                    st.session_state.pop(pending_key, None)
                    st.rerun()

    return render


# ---------- Transactions ----------

def transactions_page(page: Page):
    st.header(f"{page.icon} {page.title}")
    client = get_client()

    try:
        names = ledger.member_names(client)
    except BackendError:
        st.error("Could not load users.")
        return
    try:
        txns = ledger.list_transactions(client)
    except BackendError:
        st.error("Could not load transactions.")
        return

    search = st.text_input("Search by user name", key="txn_search")
    filtered = ledger.filter_transactions(txns, names, search)
    current = pager("txn_page", len(filtered))
    shown = utils.paginate(filtered, current)

    if shown:
        st.dataframe(pd.DataFrame(ledger.ledger_rows(shown, names)), use_container_width=True, hide_index=True)
        by_id = {str(t.id): t for t in shown}
        chosen = st.selectbox("Details", options=[""] + list(by_id), format_func=lambda i: i or "(none)")
        if chosen:
            with st.expander("Transaction details", expanded=True):
                for label, value in ledger.transaction_details(by_id[chosen], names).items():
                    st.write(f"**{label}:** {value}")
    else:
        st.caption("No transactions found.")


# ---------- Tickets ----------

def tickets_page(page: Page):
    st.header(f"{page.icon} {page.title}")
    show_flash()
    client = get_client()

    try:
        rows, concerts = tickets.load_inventory(client)
    except BackendError:
        st.error("Failed to load data")
        return

    search = st.text_input("Search by concert name", key="ticket_search")
    filtered = tickets.filter_tickets(rows, search)
    if filtered:
        st.dataframe(
            pd.DataFrame(
                [
                    {"ID": t.id, "Concert": t.concert_name, "Ticket": t.ticket_name,
                     "Price": t.price, "Quantity": t.quantity}
                    for t in filtered
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("No tickets found.")

    with st.expander("Add concert"):
        new_concert = st.text_input("Concert name", key="new_concert")
        if st.button("Add concert"):
            try:
                tickets.add_concert(client, new_concert)
            except ValidationError as e:
                st.warning(e.errors["concert_name"])
            except BackendError as e:
                st.error(str(e))
            else:
                st.rerun()

    st.divider()

    by_id = {t.id: t for t in rows}
    editing_id = st.selectbox(
        "Ticket",
        options=[None] + list(by_id),
        format_func=lambda i: "(new ticket)" if i is None else f"{by_id[i].concert_name} - {by_id[i].ticket_name}",
    )
    editing = by_id.get(editing_id)
    concert_names = {c["id"]: c["concert_name"] for c in concerts}

    with st.form("ticket_form"):
        concert_ids = list(concert_names)
        concert_id = st.selectbox(
            "Concert",
            options=[None] + concert_ids,
            index=(concert_ids.index(editing.concert_id) + 1) if editing and editing.concert_id in concert_ids else 0,
            format_func=lambda i: "-- Select concert --" if i is None else concert_names[i],
        )
        ticket_name = st.text_input("Ticket name", value=editing.ticket_name if editing else "")
        price = st.text_input("Price", value=str(editing.price) if editing else "")
        quantity = st.text_input("Quantity", value=str(editing.quantity) if editing else "")
        submitted = st.form_submit_button("Update" if editing else "Add", type="primary")

    if submitted:
        form = {"concert_id": concert_id, "ticket_name": ticket_name, "price": price, "quantity": quantity}
        try:
            tickets.save_ticket(client, form, ticket_id=editing_id)
        except ValidationError:
            st.warning("All fields are required")
        except BackendError as e:
            st.error(str(e))
        else:
            st.session_state.flash = ("success", f"Ticket {'updated' if editing else 'added'} successfully")
            st.rerun()

    if editing:
        confirm = st.checkbox("Confirm delete of this ticket", key="ticket_del_confirm")
        if st.button("Delete ticket", disabled=not confirm):
            try:
                tickets.delete_ticket(client, editing.id)
            except BackendError as e:
                st.error(str(e))
            else:
                st.rerun()


# ---------- Settings ----------

def settings_page(page: Page):
    st.header(f"{page.icon} {page.title}")
    client = get_client()

    if client.name != "local":
        st.caption("Accounts and data are managed in the Supabase dashboard.")
        return

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        if len(p1) < 6:
            st.error("Password must be at least 6 characters.")
        elif p1 != p2:
            st.error("Passwords do not match.")
        else:
            auth.change_password(client, st.session_state.username, p1)
            st.success("Password updated.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 3 sample users, a few transactions and a concert (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data(client)
        st.success("Sample data inserted.")
        st.rerun()


PAGES = [
    Page("Dashboard", "📊", dashboard_page),
    Page("Users", "👥", members_page),
    Page("Top Up", "💰", balance_page(KIND_TOP_UP)),
    Page("Debit", "💳", balance_page(KIND_DEBIT, with_scanner=True)),
    Page("Transactions", "🧾", transactions_page),
    Page("Tickets", "🎫", tickets_page),
    Page("Settings", "⚙️", settings_page),
]


def main_app():
    st.sidebar.title(f"🏨 {Config.LODGE_NAME}")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    titles = [p.title for p in PAGES]
    if "page" not in st.session_state:
        st.session_state.page = titles[0]
    st.session_state.page = st.sidebar.radio("Navigate", titles, index=titles.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    page = next(p for p in PAGES if p.title == st.session_state.page)
    scanner = st.session_state.get("scanner")
    if scanner is not None and scanner.active and page.title != "Debit":
        scanner.stop()
    page.render(page)


# --------- App entry ---------

def run():
    init_state()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if get_client().is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
