"""Cached SQL queries for the analytics dashboard."""

import sqlite3

import pandas as pd
import streamlit as st

from config import PipelineConfig, load_config
from db import CatalogStore, get_connection
from scoring import ScoringEngine
from selection import SelectionEngine


def get_config() -> PipelineConfig:
    """Same environment-driven settings the CLI and scheduler use."""
    return load_config()


def get_conn() -> sqlite3.Connection:
    return sqlite3.connect(get_config().db_path)


@st.cache_data(ttl=300)
def get_status_breakdown() -> pd.DataFrame:
    """Item count per enrichment status."""
    conn = get_conn()
    df = pd.read_sql_query(
        "SELECT status, COUNT(*) as count FROM items GROUP BY status",
        conn,
    )
    conn.close()
    return df


@st.cache_data(ttl=300)
def get_items_per_shop() -> pd.DataFrame:
    conn = get_conn()
    df = pd.read_sql_query(
        """SELECT shop, stock_status, COUNT(*) as count
           FROM items GROUP BY shop, stock_status ORDER BY count DESC""",
        conn,
    )
    conn.close()
    return df


@st.cache_data(ttl=300)
def get_price_per_gram() -> pd.DataFrame:
    conn = get_conn()
    df = pd.read_sql_query(
        """SELECT shop, name, price, currency, weight_grams, price_per_gram, value_score
           FROM items
           WHERE price_per_gram IS NOT NULL AND stock_status = 'InStock'""",
        conn,
    )
    conn.close()
    return df


@st.cache_data(ttl=300)
def get_last_sync() -> str | None:
    conn = get_conn()
    row = conn.execute(
        "SELECT MAX(last_synced_at) FROM items"
    ).fetchone()
    conn.close()
    return row[0] if row else None


@st.cache_data(ttl=300)
def get_current_shortlists() -> pd.DataFrame:
    """Ranked shortlist per bucket as the next selection run would see it."""
    config = get_config()
    store = CatalogStore(get_connection(config.db_path))
    try:
        engine = SelectionEngine(config.selection, ScoringEngine(config.weights))
        items = store.list_all()
        now = engine.clock()
        eligible = [item for item in items if engine.is_eligible(item, now)]
        shortlists = engine.build_shortlists(eligible)
    finally:
        store.close()

    rows = []
    for bucket, picks in shortlists.items():
        for rank, pick in enumerate(picks, 1):
            rows.append({"bucket": bucket, "rank": rank, **pick.to_dict()})
    return pd.DataFrame(rows)


@st.cache_data(ttl=300)
def get_artifacts(limit_days: int = 14) -> pd.DataFrame:
    """Most recent published reports, newest first."""
    conn = get_conn()
    df = pd.read_sql_query(
        """SELECT date, language, title, body, external_id, published_at
           FROM artifacts
           WHERE date IN (SELECT DISTINCT date FROM artifacts ORDER BY date DESC LIMIT ?)
           ORDER BY date DESC, language""",
        conn,
        params=(limit_days,),
    )
    conn.close()
    return df
