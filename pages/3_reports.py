"""Published report artifacts."""

import streamlit as st

from analytics.queries import get_artifacts

st.header("Reports")

artifacts_df = get_artifacts()
if artifacts_df.empty:
    st.info("Nothing published yet.")
    st.stop()

for date, group in artifacts_df.groupby("date", sort=False):
    st.subheader(date)
    tabs = st.tabs(list(group["language"]))
    for tab, (_, row) in zip(tabs, group.iterrows()):
        with tab:
            st.markdown(f"**{row['title']}**")
            st.text(row["body"])
            if row["published_at"]:
                st.caption(f"Published {row['published_at'][:16]}")
