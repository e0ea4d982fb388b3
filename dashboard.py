"""Bean Scout analytics dashboard: Streamlit entrypoint."""

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

from analytics.queries import get_last_sync

st.set_page_config(
    page_title="Bean Scout",
    page_icon="☕",
    layout="wide",
)

# --- Sidebar ---
st.sidebar.title("Bean Scout")

last_sync = get_last_sync()
if last_sync:
    st.sidebar.caption(f"Last sync: {last_sync[:16]}")

if st.sidebar.button("🔄 Refresh data"):
    st.cache_data.clear()
    st.rerun()

# --- Navigation ---
pages = [
    st.Page("pages/1_overview.py", title="Overview", icon="📊", default=True),
    st.Page("pages/2_shortlists.py", title="Shortlists", icon="🏆"),
    st.Page("pages/3_reports.py", title="Reports", icon="📰"),
]

pg = st.navigation(pages)
pg.run()
