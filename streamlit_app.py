"""
Streamlit UI for HeadroomCalc.

Features:
- Year list with entry counts and totals
- Add current year / clone last year
- Headroom summary for the selected year
- Income entries (view, add, delete)
- Delete a year with everything it owns
- Filing profile settings and tax table status
- PDF report download

Start with: streamlit run streamlit_app.py
"""

import os

import pandas as pd
import requests
import streamlit as st

st.set_page_config(page_title="HeadroomCalc", layout="wide")

SOURCE_TYPES = ["Salary", "Bonus", "RSU Vest", "Dividend", "Interest", "Self-Employment", "Other"]
FILING_STATUSES = ["Single", "Married Filing Jointly", "Married Filing Separately", "Head of Household"]


def currency(x) -> str:
    # null comes back for NaN amounts
    if x is None:
        x = 0.0
    sign = "-" if x < 0 else ""
    return f"{sign}${abs(x):,.2f}"


# ============================================================================
# Configuration
# ============================================================================

backend_url = st.sidebar.text_input(
    "Backend URL",
    value=os.environ.get("BACKEND_URL", "http://127.0.0.1:8000"),
)


def api(method: str, path: str, **kwargs) -> requests.Response:
    return requests.request(method, f"{backend_url}{path}", timeout=30, **kwargs)


# ============================================================================
# Sidebar: years
# ============================================================================

st.sidebar.title("HeadroomCalc")

col_add, col_clone = st.sidebar.columns(2)
with col_add:
    if st.button("Add Year"):
        try:
            resp = api("POST", "/ledgers/current")
            if resp.status_code == 200:
                st.session_state["selected_year"] = resp.json()["year"]
            else:
                st.sidebar.error(f"Error: {resp.status_code} -> {resp.text}")
        except Exception as e:
            st.sidebar.error(f"Request failed: {e}")
with col_clone:
    if st.button("Clone Last Year"):
        try:
            resp = api("POST", "/ledgers/clone-latest")
            if resp.status_code == 200:
                st.session_state["selected_year"] = resp.json()["year"]
            elif resp.status_code == 404:
                st.sidebar.info("Add a year first.")
            else:
                st.sidebar.error(f"Error: {resp.status_code} -> {resp.text}")
        except Exception as e:
            st.sidebar.error(f"Request failed: {e}")

ledgers = []
try:
    resp = api("GET", "/ledgers")
    if resp.status_code == 200:
        ledgers = resp.json()
    else:
        st.sidebar.error(f"Error: {resp.status_code} -> {resp.text}")
except Exception as e:
    st.sidebar.error(f"Backend unreachable: {e}")

if not ledgers:
    st.title("Select or add a year")
    st.write("Your income entries and headroom will appear here.")
    st.stop()

labels = {
    l["year"]: f"{l['year']} — {len(l['entries'])} entries — {currency(l['total_income'])}"
    for l in ledgers
}
years = [l["year"] for l in ledgers]
default_year = st.session_state.get("selected_year", years[0])
year = st.sidebar.radio(
    "Years",
    options=years,
    index=years.index(default_year) if default_year in years else 0,
    format_func=lambda y: labels[y],
)
st.session_state["selected_year"] = year
ledger = next(l for l in ledgers if l["year"] == year)

st.title(f"Tax Year {year}")

tab_summary, tab_entries, tab_settings, tab_help = st.tabs([
    "Headroom",
    "Income Entries",
    "Settings",
    "How to Use",
])


# ============================================================================
# Tab 1: Headroom
# ============================================================================

with tab_summary:
    resp = api("GET", f"/ledgers/{year}/headroom")
    if resp.status_code == 200:
        r = resp.json()
        m1, m2, m3, m4 = st.columns(4)
        with m1:
            st.metric("Total Income", currency(r["total_income"]))
        with m2:
            st.metric("Taxable Income", currency(r["taxable_income"]))
        with m3:
            upper = currency(r["bracket_upper"]) if r["bracket_upper"] is not None else "+"
            st.metric("Current Bracket", f"{r['bracket_rate'] * 100:.4g}%")
            st.caption(f"{currency(r['bracket_lower'])} – {upper}")
        with m4:
            if r["dollars_to_next_bracket"] is not None:
                st.metric("Headroom to Next Bracket", currency(r["dollars_to_next_bracket"]))
            else:
                st.metric("Headroom to Next Bracket", "Top bracket")
        filing_status = (ledger.get("profile") or {}).get("status", "Single")
        if filing_status != "Single":
            st.caption(f"{filing_status} selected. Brackets come from the single-filer federal table for this year.")
    elif resp.status_code == 404:
        st.warning(resp.json().get("detail", "Tax tables are unavailable for this year."))
    else:
        st.error(f"Error: {resp.status_code} -> {resp.text}")

    report = api("GET", f"/ledgers/{year}/report")
    if report.status_code == 200:
        st.download_button(
            label="⬇️ Export PDF Report",
            data=report.content,
            file_name=f"HeadroomCalc_Report_{year}.pdf",
            mime="application/pdf",
        )
    else:
        st.error("Could not render PDF.")


# ============================================================================
# Tab 2: Income Entries
# ============================================================================

with tab_entries:
    entries = ledger["entries"]
    if entries:
        df = pd.DataFrame(entries)
        display_cols = ["display_name", "source_type", "amount", "symbol", "shares", "fair_market_price"]
        st.dataframe(df[[c for c in display_cols if c in df.columns]], use_container_width=True)

        to_delete = st.selectbox(
            "Remove an entry",
            options=[e["entry_id"] for e in entries],
            format_func=lambda eid: next(
                f"{e['display_name'] or e['source_type']} ({currency(e['amount'])})"
                for e in entries if e["entry_id"] == eid
            ),
        )
        if st.button("Remove Entry"):
            resp = api("DELETE", f"/ledgers/{year}/entries/{to_delete}")
            if resp.status_code == 204:
                st.rerun()
            else:
                st.error(f"Error: {resp.status_code} -> {resp.text}")
    else:
        st.info("No income entries yet.")

    st.subheader("Add Entry")
    with st.form(f"entry_form_{year}"):
        c1, c2, c3 = st.columns(3)
        source_type = c1.selectbox("Source", SOURCE_TYPES)
        display_name = c2.text_input("Name")
        amount = c3.number_input("Amount", value=0.0, step=100.0)

        with st.expander("Stock detail (optional)"):
            s1, s2, s3, s4 = st.columns(4)
            symbol = s1.text_input("Symbol")
            shares = s2.number_input("Shares", min_value=0.0, value=0.0)
            fmv = s3.number_input("Fair market price", min_value=0.0, value=0.0)
            basis = s4.number_input("Cost basis / share", min_value=0.0, value=0.0)

        if st.form_submit_button("Add"):
            body = {
                "source_type": source_type,
                "display_name": display_name,
                "amount": float(amount),
                "symbol": symbol or None,
                "shares": shares or None,
                "fair_market_price": fmv or None,
                "cost_basis_per_share": basis or None,
            }
            resp = api("POST", f"/ledgers/{year}/entries", json=body)
            if resp.status_code == 201:
                st.rerun()
            else:
                st.error(f"Error: {resp.status_code} -> {resp.text}")


# ============================================================================
# Tab 3: Settings
# ============================================================================

with tab_settings:
    st.subheader("Filing Profile")
    # opening settings creates the default profile when the year has none
    resp = api("POST", f"/ledgers/{year}/profile/default")
    if resp.status_code == 200:
        profile = resp.json()["profile"]
        with st.form(f"profile_form_{year}"):
            status = st.selectbox(
                "Filing Status",
                FILING_STATUSES,
                index=FILING_STATUSES.index(profile["status"]),
            )
            deduction = st.number_input(
                "Standard Deduction",
                min_value=0.0,
                value=float(profile["standard_deduction"] or 0.0),
                step=100.0,
            )
            st.caption("Bracket tables are single-filer federal brackets; other statuses only change the deduction.")
            if st.form_submit_button("Save Profile"):
                resp = api("PUT", f"/ledgers/{year}/profile", json={"status": status, "standard_deduction": deduction})
                if resp.status_code == 200:
                    st.success("✓ Profile saved.")
                    st.rerun()
                else:
                    st.error(f"Error: {resp.status_code} -> {resp.text}")
    else:
        st.error(f"Error: {resp.status_code} -> {resp.text}")

    st.subheader("Tax Tables")
    tt = api("GET", f"/tax-tables/{year}").json()
    if tt["status"] == "Found":
        st.write(f"Year {year} JSON: Found")
        st.dataframe(pd.DataFrame(tt["brackets"]), use_container_width=True)
    else:
        st.error(f"Year {year} JSON: {tt['status']}" + (f" ({tt['detail']})" if tt.get("detail") else ""))

    st.subheader("Data Management")
    confirm = st.checkbox(f"Delete {len(ledger['entries'])} entries for {year}? This cannot be undone.")
    if st.button(f"Delete all entries for {year}", disabled=not confirm):
        resp = api("DELETE", f"/ledgers/{year}/entries")
        if resp.status_code == 200:
            st.success(f"✓ Deleted {resp.json()['deleted']} entries.")
            st.rerun()
        else:
            st.error(f"Error: {resp.status_code} -> {resp.text}")

    confirm_year = st.checkbox(f"Delete tax year {year} with its profile and entries? This cannot be undone.")
    if st.button(f"Delete year {year}", disabled=not confirm_year):
        resp = api("DELETE", f"/ledgers/{year}")
        if resp.status_code == 204:
            st.session_state.pop("selected_year", None)
            st.rerun()
        else:
            st.error(f"Error: {resp.status_code} -> {resp.text}")


# ============================================================================
# Tab 4: How to Use / About
# ============================================================================

with tab_help:
    st.markdown(
        """
**How to use**

1. Add the current year, or clone last year to start from its entries.
2. Record each income item: salary, bonuses, RSU vests, dividends, interest.
3. Set your filing status and standard deduction under Settings.
4. The Headroom tab shows your taxable income, current marginal bracket and
   how many more dollars fit before the next bracket.
5. Export a PDF summary for your records.

**About**

HeadroomCalc produces planning estimates only. It is not tax or legal advice
and is intended for personal use only.
"""
    )

st.markdown("---")
st.caption("Tip: Start the backend with `uvicorn headroom.main:app --reload --port 8000` before running Streamlit.")
