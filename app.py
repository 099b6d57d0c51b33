from contextlib import contextmanager
from typing import Optional

import altair as alt
import pandas as pd
import streamlit as st

from txn_core.charts import daily_line_chart, histogram_chart, ranked_bar_chart
from txn_core.config import HISTOGRAM_BINS, TABLE_PAGE_SIZE, get_data_path
from txn_core.data import (
    CATEGORY_COL,
    COUNTRY_COL,
    DATE_COL,
    DatasetLoadError,
    format_currency_columns,
    format_kpis,
    format_percent_columns,
    load_dashboard_data,
)
from txn_core.engine import recompute, search_table
from txn_core.filters import ALL, normalize_filters

alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin: 6px 0 12px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(selection) -> str:
    chips = [
        f"Dates: {selection.date_start} – {selection.date_end}",
        f"Country: {'All' if selection.country == ALL else selection.country}",
        f"Channel: {'All' if selection.channel == ALL else selection.channel}",
        f"Category: {'All' if selection.merchant_category == ALL else selection.merchant_category}",
        "Fraud only" if selection.fraud_only else "All transactions",
    ]
    return "".join(f"<span class='chip'>{txt}</span>" for txt in chips)


def chart_or_info(chart: Optional[alt.Chart], empty_df: bool):
    if empty_df or chart is None:
        st.info("No data for the selected filters.")
        return
    st.altair_chart(chart, use_container_width=True)


# ---------- UI setup ----------
st.set_page_config(page_title="Transaction & Fraud Analytics Dashboard", layout="wide")
inject_base_styles()
st.title("Transaction & Fraud Analytics Dashboard")

try:
    dataset = load_dashboard_data()
except DatasetLoadError as exc:
    st.error(f"Could not load {get_data_path().name}: {exc}")
    st.stop()

if dataset.frame.empty:
    st.error("The transaction file has no rows.")
    st.stop()

# ----- Sidebar: filters -----
with st.sidebar:
    st.markdown("### Filters")
    date_range = st.date_input(
        "Transaction Date Range",
        value=(dataset.min_date, dataset.max_date),
        min_value=dataset.min_date,
        max_value=dataset.max_date,
    )
    # The widget returns a single date while a range is being picked.
    if isinstance(date_range, (tuple, list)) and len(date_range) == 2:
        date_start, date_end = date_range
    else:
        date_start = date_range[0] if isinstance(date_range, (tuple, list)) and date_range else dataset.min_date
        date_end = date_start

    country = st.selectbox("Country", ["All"] + dataset.countries, index=0)
    channel = st.selectbox("Channel", ["All"] + dataset.channels, index=0)
    category = st.selectbox("Merchant Category", ["All"] + dataset.categories, index=0)
    fraud_filter = st.radio("Transaction Type", ["All transactions", "Fraud only"], index=0)

    with st.expander("Advanced settings", expanded=False):
        bins = st.slider("Histogram bins", min_value=5, max_value=100, value=HISTOGRAM_BINS, step=5)

    st.markdown("---")
    st.caption(f"Data source: {dataset.source}")

selection = normalize_filters(
    {
        "date_start": date_start,
        "date_end": date_end,
        "country": country,
        "channel": channel,
        "merchant_category": category,
        "fraud_only": fraud_filter == "Fraud only",
    },
    dataset=dataset,
)
view = recompute(dataset.frame, selection, bins=bins)
filtered: pd.DataFrame = view["filtered"]

st.markdown(f"<div class='chip-row'>{format_filter_summary(selection)}</div>", unsafe_allow_html=True)

tab_overview, tab_breakdown, tab_profile, tab_table = st.tabs(
    ["Overview", "By Category & Country", "Customer Profile", "Data Table"]
)

with tab_overview:
    kpis = format_kpis(view["kpis"])
    cols = st.columns(4)
    cols[0].metric("Total Transactions", kpis["transaction_count"]["display"])
    cols[1].metric("Total Amount", kpis["total_amount"]["display"])
    cols[2].metric("Avg Transaction Value", kpis["avg_amount"]["display"])
    cols[3].metric("Fraud Rate", kpis["fraud_rate"]["display"])

    daily = view["daily_transactions"]
    daily_fraud = view["daily_fraud"]
    trend_cols = st.columns(2)
    with trend_cols[0]:
        with card("Transactions Over Time"):
            chart_or_info(
                None if daily.empty else daily_line_chart(daily, date_col=DATE_COL, value_col="transactions", title="Number of Transactions"),
                daily.empty,
            )
    with trend_cols[1]:
        with card("Fraud Count Over Time"):
            chart_or_info(
                None if daily_fraud.empty else daily_line_chart(daily_fraud, date_col=DATE_COL, value_col="fraud_count", title="Fraudulent Transactions"),
                daily_fraud.empty,
            )

with tab_breakdown:
    by_category = view["amount_by_category"]
    by_country = view["fraud_rate_by_country"]
    cols = st.columns(2)
    with cols[0]:
        with card("Total Amount by Merchant Category"):
            chart_or_info(
                None
                if by_category.empty
                else ranked_bar_chart(
                    by_category,
                    key_col=CATEGORY_COL,
                    value_col="total_amount",
                    key_title="Merchant Category",
                    value_title="Total Amount",
                    value_format="$,.0f",
                ),
                by_category.empty,
            )
            if not by_category.empty:
                st.dataframe(format_currency_columns(by_category, ["total_amount"]), hide_index=True, use_container_width=True)
    with cols[1]:
        with card("Fraud Rate by Country"):
            chart_or_info(
                None
                if by_country.empty
                else ranked_bar_chart(
                    by_country.iloc[::-1],
                    key_col=COUNTRY_COL,
                    value_col="fraud_rate",
                    key_title="Country",
                    value_title="Fraud Rate",
                    value_format=".1%",
                ),
                by_country.empty,
            )
            if not by_country.empty:
                st.dataframe(format_percent_columns(by_country, ["fraud_rate"]), hide_index=True, use_container_width=True)

with tab_profile:
    account_age = view["account_age_distribution"]
    user_txns = view["user_transactions_distribution"]
    cols = st.columns(2)
    with cols[0]:
        with card("Distribution of Account Age (days)"):
            chart_or_info(
                None if account_age.empty else histogram_chart(account_age, x_title="Account Age (days)", y_title="Count of Transactions"),
                account_age.empty,
            )
    with cols[1]:
        with card("Transactions per User (field in dataset)"):
            chart_or_info(
                None
                if user_txns.empty
                else histogram_chart(user_txns, x_title="Total Transactions Per User (field)", y_title="Count of Records"),
                user_txns.empty,
            )

with tab_table:
    top = st.columns([6, 2])
    query = top[0].text_input("Search", "", placeholder="Search any column")
    table_df = search_table(filtered, query)
    if not table_df.empty:
        top[1].download_button(
            "Export CSV",
            data=table_df.to_csv(index=False).encode("utf-8"),
            file_name="transactions_filtered.csv",
            mime="text/csv",
        )
    st.caption(f"{len(table_df):,} of {len(filtered):,} filtered transactions")
    st.dataframe(
        table_df,
        use_container_width=True,
        hide_index=True,
        height=min(38 + 35 * TABLE_PAGE_SIZE, 38 + 35 * max(1, len(table_df))),
    )
