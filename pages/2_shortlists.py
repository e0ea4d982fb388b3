"""Ranked shortlists as the next selection run would see them."""

import streamlit as st

from analytics.charts import shortlist_score_bar
from analytics.queries import get_current_shortlists

st.header("Shortlists")
st.caption("In stock, enriched, recently synced and outside the cooldown window.")

shortlist_df = get_current_shortlists()
if shortlist_df.empty:
    st.info("No eligible candidates right now.")
    st.stop()

st.plotly_chart(shortlist_score_bar(shortlist_df), use_container_width=True)

for bucket in ("filter", "espresso"):
    st.subheader(bucket.capitalize())
    bucket_df = shortlist_df[shortlist_df["bucket"] == bucket]
    if bucket_df.empty:
        st.info(f"No {bucket} candidates.")
        continue
    st.dataframe(
        bucket_df[["rank", "shop", "name", "price", "score", "notable", "variety", "process", "flavor_notes"]],
        use_container_width=True,
        hide_index=True,
        column_config={
            "score": st.column_config.NumberColumn("Score", format="%.2f"),
            "notable": st.column_config.CheckboxColumn("Notable"),
        },
    )
