"""Catalog overview page."""

import streamlit as st

from analytics.queries import (
    get_items_per_shop,
    get_price_per_gram,
    get_status_breakdown,
)
from analytics.charts import (
    items_by_shop_bar,
    price_per_gram_histogram,
    status_pie_chart,
)

st.header("Overview")

# --- Top metrics ---
status_df = get_status_breakdown()
counts = dict(zip(status_df["status"], status_df["count"])) if not status_df.empty else {}

c1, c2, c3, c4 = st.columns(4)
c1.metric("Beans", f"{sum(counts.values()):,}")
c2.metric("Analyzed", counts.get("Completed", 0))
c3.metric("Pending", counts.get("Pending", 0))
c4.metric("Errors", counts.get("Error", 0))

st.divider()

# --- Charts row ---
col_left, col_right = st.columns(2)

with col_left:
    shop_df = get_items_per_shop()
    if not shop_df.empty:
        st.plotly_chart(items_by_shop_bar(shop_df), use_container_width=True)
    else:
        st.info("No beans synced yet.")

with col_right:
    if not status_df.empty:
        st.plotly_chart(status_pie_chart(status_df), use_container_width=True)
    else:
        st.info("No status data yet.")

st.divider()

# --- Price per gram ---
ppg_df = get_price_per_gram()
if not ppg_df.empty:
    st.plotly_chart(price_per_gram_histogram(ppg_df), use_container_width=True)
    st.dataframe(
        ppg_df.sort_values("price_per_gram"),
        use_container_width=True,
        column_config={
            "price_per_gram": st.column_config.NumberColumn("Price/g", format="%.3f"),
            "value_score": st.column_config.NumberColumn("Value", format="%.1f"),
            "weight_grams": st.column_config.NumberColumn("Grams", format="%d"),
        },
    )
else:
    st.info("No price-per-gram data yet.")
