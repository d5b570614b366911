"""
Streamlit dashboard for the Arbitrage Engine.

Run with:
    streamlit run dashboard/app.py

Reads the engine's status API (STATUS_API_URL, default http://localhost:8082).
With USE_KAFKA=true it also shows the alert history from the arbitrage-alerts topic.
"""

import os
import sys
import time

import pandas as pd
import requests
import streamlit as st
from streamlit_autorefresh import st_autorefresh

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from config import ARBITRAGE_THRESHOLD, STATUS_API_URL, USE_KAFKA

if USE_KAFKA:
    from dashboard.kafka_state import get_alerts, start_background_consumer

STATE_COLOURS = {
    "connected": "#00cc66",
    "degraded": "#ff9900",
    "errored": "#ff4444",
    "connecting": "#aaaaaa",
    "disconnected": "#ff4444",
}


def fetch_status() -> dict:
    """Returns the /arbitrage-status payload, or None if the engine is unreachable."""
    try:
        resp = requests.get(f"{STATUS_API_URL}/arbitrage-status", timeout=3)
        resp.raise_for_status()
        return resp.json()
    except requests.exceptions.RequestException:
        return None


# ── Page config ────────────────────────────────────────────────────────────────
st.set_page_config(
    page_title="Arbitrage Engine",
    page_icon="⛓️",
    layout="wide",
)

st.markdown("""
<style>
    .block-container { padding-top: 1.5rem; }
    .metric-card {
        background: #0e1117;
        border: 1px solid #2a2a2a;
        border-radius: 10px;
        padding: 16px 20px;
        text-align: center;
        margin-bottom: 8px;
    }
    .metric-label { font-size: 0.85rem; color: #888; margin-bottom: 4px; }
    .metric-value { font-size: 1.6rem; font-weight: 700; color: #fff; }
</style>
""", unsafe_allow_html=True)

# ── Auto-refresh every 5 seconds ──────────────────────────────────────────────
st_autorefresh(interval=5000, key="autorefresh")

status = fetch_status()

st.markdown("## ⛓️ Arbitrage Engine")
st.markdown("---")

if status is None:
    st.error(f"Engine not reachable at {STATUS_API_URL}. Is `python main.py` running?")
    st.stop()

# ── METRIC CARDS ──────────────────────────────────────────────────────────────
state = status["connectionState"]
cards = [
    ("Monitor", status["status"], "#fff"),
    ("RPC connection", state, STATE_COLOURS.get(state, "#fff")),
    ("Current block", f"{status['currentBlock']:,}", "#fff"),
    ("Pairs monitored", status["monitoredPairsCount"], "#fff"),
]
for col, (label, value, colour) in zip(st.columns(len(cards)), cards):
    with col:
        st.markdown(f"""
        <div class='metric-card'>
            <div class='metric-label'>{label}</div>
            <div class='metric-value' style='color:{colour};'>{value}</div>
        </div>
        """, unsafe_allow_html=True)

st.markdown("<br>", unsafe_allow_html=True)
left, right = st.columns([3, 2])

# ── LEFT: latest pair checks ──────────────────────────────────────────────────
with left:
    st.markdown("#### 📊 Latest price differences")
    st.caption(f"Opportunity when |difference| > {ARBITRAGE_THRESHOLD * 100:.2f}%.")
    if status["reports"]:
        df = pd.DataFrame(status["reports"]).set_index("pair")
        df.index.name = "Pair"

        def highlight(row):
            style = "background-color:#2a0a0a; color:#ff4444; font-weight:700" if row["opportunity"] else ""
            return [style] * len(row)

        st.dataframe(df.style.apply(highlight, axis=1), use_container_width=True)
    else:
        st.info("Waiting for the first monitoring cycle…")

# ── RIGHT: opportunities ──────────────────────────────────────────────────────
with right:
    st.markdown("#### 🚨 Opportunities")
    last = status["lastOpportunity"]
    if last:
        st.success(f"**Block {last['blockNumber']:,}** · {last['details']}  \n{last['timestamp']}")
    else:
        st.info("No opportunity detected yet.")

    if USE_KAFKA:
        start_background_consumer()
        history = get_alerts()
        if history:
            st.caption("Alert history (arbitrage-alerts topic)")
            st.dataframe(pd.DataFrame(history), use_container_width=True, height=240)

# ── FOOTER ────────────────────────────────────────────────────────────────────
st.markdown("---")
st.caption(
    f"Engine: {STATUS_API_URL} &nbsp;|&nbsp; "
    f"Refreshes every 5s &nbsp;|&nbsp; "
    f"Last updated: {time.strftime('%H:%M:%S')} &nbsp;|&nbsp; "
    f"⚠️ Simulated prices, for demonstration only"
)
