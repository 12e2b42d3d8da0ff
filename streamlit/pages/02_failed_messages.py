import os

import requests
import streamlit as st

BACKEND_URL = os.environ.get("BACKEND_URL", "").rstrip("/")
if not BACKEND_URL:
    st.error("Missing BACKEND_URL env var (example: http://sms-service:8080).")
    st.stop()

st.title("Failed Messages")

col1, col2 = st.columns(2)
with col1:
    page = st.number_input("Page", min_value=0, value=0, step=1)
with col2:
    size = st.selectbox("Page size", (10, 20, 50, 100), index=1)

try:
    resp = requests.get(
        f"{BACKEND_URL}/v1/messages/failed",
        params={"page": int(page), "size": int(size)},
        timeout=10,
    )
    resp.raise_for_status()
    payload = resp.json()
except Exception as e:
    st.error(f"Backend error: {e}")
    st.stop()

st.caption(f"{payload.get('total_count', 0)} failed message(s), page {page + 1} of {max(1, payload.get('total_pages', 1))}")
rows = [
    {
        "id": m["id"],
        "recipient": m["recipient"],
        "failure_reason": m.get("failure_reason"),
        "updated_at": m["updated_at"],
    }
    for m in payload.get("messages", [])
]
if rows:
    st.dataframe(rows, use_container_width=True)
else:
    st.info("No failed messages on this page.")
