from __future__ import annotations

import pandas as pd
import streamlit as st
import streamlit.components.v1 as components

from compute_latest import PROC_CSV, load_processed
from config import KEY_COL
from embed import embed_code
from preview_charts import coverage_by_state


@st.cache_data(show_spinner=False)
def load_latest() -> pd.DataFrame | None:
    return load_processed(PROC_CSV)


def numeric_metrics(df: pd.DataFrame) -> list[str]:
    return [c for c in df.columns if c != KEY_COL and pd.api.types.is_numeric_dtype(df[c])]


def summarize(df: pd.DataFrame, metric: str) -> pd.DataFrame:
    values = pd.to_numeric(df[metric], errors="coerce")
    rows = [
        {"Stat": "Counties", "Value": len(values)},
        {"Stat": "With value", "Value": int(values.notna().sum())},
        {"Stat": "Min", "Value": round(values.min(), 2) if values.notna().any() else None},
        {"Stat": "Median", "Value": round(values.median(), 2) if values.notna().any() else None},
        {"Stat": "Max", "Value": round(values.max(), 2) if values.notna().any() else None},
    ]
    return pd.DataFrame(rows)


def main() -> None:
    st.set_page_config(page_title="County Choropleth Preview", layout="wide")
    st.title("County Choropleth Preview")

    df = load_latest()
    if df is None or df.empty:
        st.error(f"{PROC_CSV} not found. Run compute_latest.py or run_pipeline.py --dry-run first.")
        return

    metrics = numeric_metrics(df)
    if not metrics:
        st.error("No numeric metric columns in the processed table.")
        return

    with st.sidebar:
        st.header("View Options")
        metric = st.selectbox("Metric", metrics)
        title = st.text_input("Chart title", value=metric.replace("_", " "))
        chart_id = st.text_input("Published chart id", value="")

    col_l, col_r = st.columns([1, 2])
    with col_l:
        st.subheader("Summary")
        st.dataframe(summarize(df, metric), use_container_width=True)
        st.subheader("Coverage by state")
        st.dataframe(coverage_by_state(df, metric), use_container_width=True)
    with col_r:
        st.subheader("Latest value per county")
        st.dataframe(df, use_container_width=True)

    if chart_id.strip():
        snippet = embed_code(title, chart_id.strip())
        st.subheader("Published map")
        components.html(snippet, height=500, scrolling=True)
        st.code(snippet, language="html")


if __name__ == "__main__":
    main()
