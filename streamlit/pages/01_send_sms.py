import os
import re
import time

import requests
import streamlit as st


BACKEND_URL = os.environ.get("BACKEND_URL", "").rstrip("/")
_PHONE_RE = re.compile(r"^\+?[1-9][0-9]{1,14}$")


def _check_phone(raw: str, label: str) -> str:
    phone = re.sub(r"[ \-\(\)]", "", (raw or "").strip())
    if not _PHONE_RE.fullmatch(phone):
        raise ValueError(f"{label} must use international format (e.g., +1234567890).")
    return phone


st.title("Send SMS")

if not BACKEND_URL:
    st.error("Missing BACKEND_URL env var (example: http://sms-service:8080).")
    st.stop()


with st.form("send_sms_form", clear_on_submit=False):
    col1, col2 = st.columns(2)
    with col1:
        sender = st.text_input("Sender", placeholder="+15551230000")
    with col2:
        recipient = st.text_input("Recipient", placeholder="+15559876543")
    text = st.text_area("Message Text", height=140, max_chars=1600, placeholder="Type your message...")
    wait_for_outcome = st.checkbox("Wait for delivery outcome", value=True)

    submitted = st.form_submit_button("Send")

if submitted:
    if not (text or "").strip():
        st.error("Message text is required.")
        st.stop()

    try:
        sender_norm = _check_phone(sender, "Sender")
        recipient_norm = _check_phone(recipient, "Recipient")
    except ValueError as e:
        st.error(str(e))
        st.stop()

    try:
        resp = requests.post(
            f"{BACKEND_URL}/v1/messages",
            json={"sender": sender_norm, "recipient": recipient_norm, "text": text},
            timeout=15,
        )
        payload = resp.json() if resp.content else {}
        if resp.status_code >= 400:
            st.error(f"Backend error: HTTP {resp.status_code}")
            st.json(payload)
            st.stop()
    except Exception as e:
        st.error(f"Backend error: {e}")
        st.stop()

    message_id = payload.get("id")
    if payload.get("status") == "FAILED":
        st.error(f"Message could not be queued: {payload.get('failure_reason')}")
    else:
        st.success(f"Accepted: {message_id}")

    if wait_for_outcome and payload.get("status") == "PENDING":
        with st.spinner("Waiting for delivery report..."):
            for _ in range(20):
                time.sleep(0.5)
                resp = requests.get(f"{BACKEND_URL}/v1/messages/{message_id}", timeout=10)
                if resp.ok:
                    payload = resp.json()
                    if payload.get("status") != "PENDING":
                        break
        st.info(f"Status: {payload.get('status')}")
    st.json(payload)

st.divider()
st.subheader("Look Up Message")
lookup_id = st.text_input("Message ID", placeholder="UUID returned by Send")
if st.button("Check Status"):
    mid = (lookup_id or "").strip()
    if not mid:
        st.error("Please enter a message ID.")
        st.stop()
    try:
        resp = requests.get(f"{BACKEND_URL}/v1/messages/{mid}", timeout=15)
        payload = resp.json() if resp.content else {}
    except Exception as e:
        st.error(f"Backend error: {e}")
        st.stop()
    if resp.status_code >= 400:
        st.error(payload.get("detail") or f"HTTP {resp.status_code}")
    else:
        st.json(payload)
