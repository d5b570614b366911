"""
Alert history for the Streamlit dashboard.

A background thread consumes the arbitrage-alerts topic and keeps the most
recent opportunities in memory. Started once per Streamlit process
(guarded by the _started flag).
"""

import json
import threading
from collections import deque

from kafka import KafkaConsumer

from config import KAFKA_BROKER, TOPICS

_lock = threading.Lock()

# Capped at 50 most recent alerts (newest first)
_alerts: deque = deque(maxlen=50)

_started = False


def get_alerts() -> list:
    with _lock:
        return list(_alerts)


def _consume_alerts():
    consumer = KafkaConsumer(
        TOPICS["alerts"],
        bootstrap_servers=KAFKA_BROKER,
        group_id="dashboard-alerts",
        value_deserializer=lambda v: v.decode("utf-8"),
        auto_offset_reset="earliest",  # show historical alerts on startup
    )
    for message in consumer:
        try:
            alert = json.loads(message.value)
        except ValueError:
            continue
        with _lock:
            _alerts.appendleft(alert)


def start_background_consumer():
    """Call once when the Streamlit app starts."""
    global _started
    if _started:
        return
    _started = True
    threading.Thread(target=_consume_alerts, daemon=True, name="dash-alerts").start()
