"""
Streamlit Frontend for Expense Tracker

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Balance and totals always visible
3. Clear error messages in simple language
4. Nothing is saved without an explicit "Add" action

All numbers on screen come from expense_tracker.reports; the UI
never sums anything itself.
"""

import asyncio
from datetime import date, datetime, time

import streamlit as st

from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.models.report import DateRange, SortBy, SortOrder, TransactionFilter
from expense_tracker.models.transaction import TransactionDraft, TransactionKind, categories_for
from expense_tracker.orchestrator import (
    ReportFlow,
    SessionFlow,
    TransactionLedger,
    TransactionValidationError,
    create_app_components,
)
from expense_tracker.reports import group_by_date
from expense_tracker.services.storage import StorageError


st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def money(amount) -> str:
    symbol = get_settings().app.currency_symbol
    return f"{symbol}{amount:,.2f}"


def main():
    """Main application entry point."""
    session_flow, ledger, report_flow, _ = get_components()

    st.sidebar.title("💰 Expense Tracker")
    st.sidebar.markdown("---")

    if not render_session_sidebar(session_flow):
        st.title("💰 Expense Tracker")
        st.info("✨ Please sign in to start managing your expenses")
        return

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Home", "➕ Add Transaction", "📊 Reports", "⚙️ Settings"],
        index=0,
    )

    state = ledger.state
    if state.index_building:
        st.warning(state.error)
        if st.button("🔄 Try again"):
            run_async(ledger.load())
            st.rerun()
    elif state.has_error:
        st.error(state.error)

    if page == "🏠 Home":
        render_home_page(ledger)
    elif page == "➕ Add Transaction":
        render_add_page(ledger)
    elif page == "📊 Reports":
        render_reports_page(report_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_session_sidebar(session_flow: SessionFlow) -> bool:
    """Sign-in controls. Returns True when a user is signed in."""
    session = session_flow.current_session

    if session is None:
        email = st.sidebar.text_input("Email")
        if st.sidebar.button("🔐 Sign in", type="primary") and email:
            run_async(session_flow.sign_in(user_id=email.strip().lower(), email=email))
            st.rerun()
        return False

    st.sidebar.markdown(f"Signed in as **{session.display_name or session.email or session.user_id}**")
    if st.sidebar.button("Sign out"):
        run_async(session_flow.sign_out())
        st.rerun()
    return True


def render_home_page(ledger: TransactionLedger):
    """Summary cards and recent transactions."""
    st.title("🏠 Overview")

    totals = ledger.calculate_totals()
    col1, col2, col3 = st.columns(3)
    col1.metric("Total Income", money(totals.total_income))
    col2.metric("Total Expenses", money(totals.total_expenses))
    col3.metric("Balance", money(totals.balance))

    if totals.balance >= 0:
        st.success("💰 You're on track: income covers your expenses.")
    else:
        st.error("⚠️ You're spending more than you earn.")

    st.markdown("---")
    st.subheader("Recent Transactions")

    groups = group_by_date(ledger.transactions)
    if not groups:
        st.info("No transactions yet. Add your first one!")
        return

    for group in groups:
        render_date_group(group)


def render_date_group(group):
    st.markdown(f"**{group.date.strftime('%B %d, %Y')}**")
    for transaction in group.transactions:
        sign = "+" if transaction.is_income else "-"
        icon = "🟢" if transaction.is_income else "🔴"
        with st.expander(
            f"{icon} {transaction.description} · {transaction.category} · "
            f"{sign}{money(transaction.amount)}"
        ):
            st.markdown(f"**Date:** {transaction.occurred_at.strftime('%b %d, %Y %H:%M')}")
            st.markdown(f"**Category:** {transaction.category}")
            st.markdown(f"**Type:** {transaction.kind.value.capitalize()}")


def render_add_page(ledger: TransactionLedger):
    """Add income or expense."""
    st.title("➕ Add Transaction")

    kind = st.radio(
        "Type",
        [TransactionKind.INCOME, TransactionKind.EXPENSE],
        format_func=lambda k: k.value.capitalize(),
        horizontal=True,
    )

    with st.form("add_transaction", clear_on_submit=True):
        category = st.selectbox("Category", categories_for(kind))
        amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
        description = st.text_input("Description", placeholder="Enter description")
        occurred_on = st.date_input("Date", value=date.today())
        submitted = st.form_submit_button(
            f"Add {kind.value.capitalize()}",
            type="primary",
        )

    if not submitted:
        return

    try:
        draft = TransactionDraft(
            kind=kind,
            category=category,
            amount=amount,
            description=description,
            occurred_at=datetime.combine(occurred_on, time()),
        )
        run_async(ledger.add_transaction(draft))
        st.success(f"{kind.value.capitalize()} added successfully!")
    except TransactionValidationError as e:
        for issue in e.result.issues:
            if issue.severity == "error":
                st.error(issue.message)
    except ValueError as e:
        st.error(f"Please check your input: {e}")
    except StorageError:
        st.error("Failed to add transaction. Please try again.")


def render_reports_page(report_flow: ReportFlow):
    """Charts, filters and the paginated transaction list."""
    st.title("📊 Reports")

    if "report_page" not in st.session_state:
        st.session_state.report_page = 1

    col1, col2, col3, col4 = st.columns([3, 2, 2, 1])
    with col1:
        search_query = st.text_input("Search transactions...")
    with col2:
        date_range = st.selectbox(
            "Date range",
            list(DateRange),
            format_func=lambda r: r.label,
        )
    with col3:
        sort_by = st.selectbox(
            "Sort by",
            list(SortBy),
            format_func=lambda s: f"Sort by {s.value.capitalize()}",
        )
    with col4:
        sort_order = st.selectbox(
            "Order",
            list(SortOrder),
            index=1,
            format_func=lambda o: "↑" if o == SortOrder.ASC else "↓",
        )

    transaction_filter = TransactionFilter(
        search_query=search_query,
        date_range=date_range,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    report = run_async(report_flow.build_report(
        filter=transaction_filter,
        page=st.session_state.report_page,
    ))
    # Keep the stored page inside the valid range as the list shrinks
    st.session_state.report_page = report.page.page

    if not report.has_transactions:
        st.info("No transactions yet. Add your first one!")
        return

    if report.category_totals:
        st.subheader("Expenses by Category")
        st.bar_chart({
            "Amount": {
                category: float(amount)
                for category, amount in report.category_totals.items()
            },
        })

    if report.monthly_series:
        st.subheader("Monthly Trend")
        months = list(report.monthly_series.values())
        st.line_chart({
            "Income": {m.label: float(m.income) for m in months},
            "Expenses": {m.label: float(m.expenses) for m in months},
        })
        st.subheader("Monthly Balance")
        st.bar_chart({
            "Savings": {m.label: float(m.savings) for m in months},
        })

    st.markdown("---")
    st.subheader("Transactions")

    if not report.date_groups:
        st.info("No transactions match your filters")
        return

    for group in report.date_groups:
        render_date_group(group)

    prev_col, info_col, next_col = st.columns([1, 2, 1])
    with prev_col:
        if st.button("Previous", disabled=not report.page.has_previous):
            st.session_state.report_page = report.page.page - 1
            st.rerun()
    with info_col:
        st.markdown(f"Page {report.page.page} of {report.page.total_pages or 1}")
    with next_col:
        if st.button("Next", disabled=not report.page.has_next):
            st.session_state.report_page = report.page.page + 1
            st.rerun()


def render_settings_page():
    """Configuration status."""
    st.title("⚙️ Settings")

    results = validate_all_settings()
    for name in ("google_sheets", "app"):
        if results.get(name):
            st.success(f"✅ {name} configured")
        else:
            st.warning(f"⚠️ {name} not configured: {results.get(f'{name}_error', '')}")
            if name == "google_sheets":
                st.info("Transactions are kept in memory until Google Sheets is configured.")


if __name__ == "__main__":
    main()
