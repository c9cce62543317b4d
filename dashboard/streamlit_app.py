"""
Sentiment Dashboard - Streamlit Frontend.

Shows the smoothed sentiment score of every ticker, refreshed
by the API server's coordinator (realtime push with fallback
polling).

PRINCIPLES:
- Read-only: the store is never written from here
- All data from the API (run_dashboard.py)
- Smoothing changes never re-fetch, only re-smooth

VISIBILITY:
The page posts visible=true once per browser session. Streamlit
has no page-hidden hook, so nothing here posts visible=false; the
dashboard is only deactivated when the API server shuts down.

Run with:
    streamlit run dashboard/streamlit_app.py
"""

import os
from datetime import datetime
import time

import pandas as pd
import plotly.graph_objects as go
import requests
import streamlit as st

# =============================================================
# CONFIGURATION
# =============================================================

API_BASE_URL = os.getenv("DASHBOARD_API_URL", "http://127.0.0.1:8000")
REFRESH_INTERVAL = 5  # seconds

st.set_page_config(
    page_title="Sentiment Dashboard",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded"
)

# =============================================================
# API HELPERS
# =============================================================

def call_api(method: str, endpoint: str, **kwargs) -> dict:
    """Call an API endpoint; configuration errors are shown verbatim."""
    try:
        response = requests.request(method, f"{API_BASE_URL}{endpoint}", timeout=10, **kwargs)
        if response.status_code == 503:
            st.error(response.json().get("detail", "Service unavailable"))
            st.stop()
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"API Error: {e}")
        return None


def fetch_api(endpoint: str, **params) -> dict:
    """Fetch data from API endpoint."""
    return call_api("GET", endpoint, params=params or None)


def post_api(endpoint: str, payload: dict = None, **params) -> dict:
    """Post to API endpoint."""
    return call_api("POST", endpoint, json=payload, params=params or None)


def score_cell_styles(colors: list) -> list:
    return [f"background-color: {color}; color: black;" for color in colors]


# Dashboard is visible while this page is open
if "activated" not in st.session_state:
    post_api("/visibility", {"visible": True})
    st.session_state.activated = True

# =============================================================
# SIDEBAR
# =============================================================

with st.sidebar:
    st.title("⚙️ Smoothing")

    smoothing = fetch_api("/smoothing")
    if smoothing:
        options = smoothing["options"]
        keys = [option["key"] for option in options]
        labels = {option["key"]: option["label"] for option in options}
        selected = st.selectbox(
            "Smoothing",
            keys,
            index=keys.index(smoothing["mode"]) if smoothing["mode"] in keys else 0,
            format_func=lambda key: labels[key],
        )

        alpha = None
        if selected == "custom":
            alpha = st.slider(
                "Alpha",
                min_value=0.0,
                max_value=1.0,
                value=float(smoothing["custom_alpha"]),
                step=0.001,
                format="%.3f",
            )

        if selected != smoothing["mode"] or (alpha is not None and alpha != smoothing["custom_alpha"]):
            smoothing = post_api("/smoothing", {"mode": selected, "alpha": alpha}, apply_now=True) or smoothing

        st.caption(f"Alpha: {smoothing['display']}")

    st.divider()

    auto_refresh = st.checkbox("Auto-refresh", value=True)
    if auto_refresh:
        refresh_rate = st.slider("Refresh rate (seconds)", 2, 60, REFRESH_INTERVAL)

    if st.button("🔄 Refresh Now", use_container_width=True):
        post_api("/refresh")
        st.rerun()

    st.divider()
    st.caption(f"Last update: {datetime.now().strftime('%H:%M:%S')}")

# =============================================================
# HEADER
# =============================================================

st.title("📈 Sentiment Dashboard")

status = fetch_api("/status")
if status:
    connected = status["connection_state"] == "connected"
    indicator = "🟢" if connected else "🔴"
    st.caption(f"{indicator} {status['connection_message']}")

    if status.get("last_error"):
        st.warning(f"Showing last good data: {status['last_error']}")

    updated = status.get("last_updated_at")
    if updated:
        st.caption(f"Updated: {updated[:19].replace('T', ' ')} UTC")

st.divider()

# =============================================================
# PANEL 1: SCORE CHARTS
# =============================================================

chart = fetch_api("/chart")

if chart and chart.get("has_data"):
    st.plotly_chart(go.Figure(chart["figure"]), use_container_width=True)
elif chart:
    st.info(chart.get("message") or "No data available")

st.divider()

# =============================================================
# PANEL 2: LATEST SCORES
# =============================================================

latest = fetch_api("/latest")

if latest and latest.get("has_data"):
    st.subheader(latest["title"])
    rows = latest["rows"]
    table = pd.DataFrame({
        "Ticker": [row["series"] for row in rows],
        "Score": [row["display"] for row in rows],
    })
    colors = [row["color"] for row in rows]
    st.dataframe(
        table.style.apply(lambda _: score_cell_styles(colors), subset=["Score"]),
        use_container_width=True,
        hide_index=True,
    )
elif latest:
    st.subheader(latest.get("title") or "Latest Scores")
    st.info(latest.get("message") or "No data available")

# =============================================================
# AUTO-REFRESH
# =============================================================

if auto_refresh:
    time.sleep(refresh_rate)
    st.rerun()
