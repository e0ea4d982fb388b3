"""Reusable Plotly chart builders for the dashboard."""

import plotly.express as px
import plotly.graph_objects as go
import pandas as pd

STATUS_COLORS = {
    "Pending": "#F1C40F",
    "Completed": "#2ECC71",
    "Skipped": "#95A5A6",
    "Error": "#E74C3C",
}

BUCKET_COLORS = {
    "filter": "#45B7D1",
    "espresso": "#8E5A3C",
}

LAYOUT_DEFAULTS = dict(
    paper_bgcolor="rgba(0,0,0,0)",
    plot_bgcolor="rgba(0,0,0,0)",
    font=dict(family="sans-serif"),
    margin=dict(l=20, r=20, t=40, b=20),
)


def status_pie_chart(df: pd.DataFrame) -> go.Figure:
    fig = px.pie(
        df,
        values="count",
        names="status",
        color="status",
        color_discrete_map=STATUS_COLORS,
        hole=0.4,
    )
    fig.update_layout(title="Enrichment status", **LAYOUT_DEFAULTS)
    return fig


def items_by_shop_bar(df: pd.DataFrame) -> go.Figure:
    fig = px.bar(
        df,
        x="count",
        y="shop",
        orientation="h",
        color="stock_status",
        barmode="stack",
    )
    fig.update_layout(
        title="Beans per shop",
        yaxis=dict(categoryorder="total ascending"),
        **LAYOUT_DEFAULTS,
    )
    return fig


def price_per_gram_histogram(df: pd.DataFrame) -> go.Figure:
    # Drop obvious unit errors (e.g. a 5 lb bag parsed as 5 g)
    q99 = df["price_per_gram"].quantile(0.99)
    clean = df[df["price_per_gram"] <= max(q99, 1.0)]
    n_outliers = len(df) - len(clean)

    fig = px.histogram(
        clean,
        x="price_per_gram",
        color="shop",
        nbins=40,
        barmode="overlay",
        opacity=0.7,
    )
    title = "Price per gram"
    if n_outliers > 0:
        title += f" ({n_outliers} outliers hidden)"
    fig.update_layout(
        title=title,
        xaxis_title="Price per gram",
        yaxis_title="Beans",
        **LAYOUT_DEFAULTS,
    )
    return fig


def shortlist_score_bar(df: pd.DataFrame) -> go.Figure:
    melted = df.melt(
        id_vars=["bucket", "name"],
        value_vars=["quality", "seasonality", "value", "versatility"],
        var_name="dimension",
        value_name="score",
    )
    fig = px.bar(
        melted,
        x="score",
        y="name",
        color="dimension",
        orientation="h",
        facet_col="bucket",
        barmode="group",
    )
    fig.update_layout(title="Shortlist sub-scores", **LAYOUT_DEFAULTS)
    return fig
