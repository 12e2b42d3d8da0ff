import os

import requests
import streamlit as st

BACKEND_URL = os.environ.get("BACKEND_URL", "").rstrip("/")
if not BACKEND_URL:
    st.error("Missing BACKEND_URL env var (example: http://sms-service:8080).")
    st.stop()


def fetch_stats() -> dict:
    resp = requests.get(f"{BACKEND_URL}/v1/messages/stats", timeout=10)
    resp.raise_for_status()
    return resp.json() or {}


st.title("SMS Delivery Overview")

try:
    stats = fetch_stats()
except Exception as e:
    st.error(f"Backend error: {e}")
    st.stop()

total = int(stats.get("total_messages", 0))
pending = int(stats.get("pending_messages", 0))
sent = int(stats.get("sent_messages", 0))
failed = int(stats.get("failed_messages", 0))
success_rate = float(stats.get("success_rate", 0.0))

col1, col2, col3, col4 = st.columns(4)
col1.metric("Total", total)
col2.metric("Pending", pending)
col3.metric("Sent", sent)
col4.metric("Failed", failed)
st.metric("Success Rate", f"{success_rate:.1%}")

# PENDING never times out, so a large backlog usually means lost callbacks.
if total and pending / total > 0.5:
    st.warning("More than half of all messages are still PENDING.")
