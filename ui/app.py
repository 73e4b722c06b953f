"""Streamlit UI for the news chatbot.

- Sidebar controls (API URL, show raw, new session)
- Chat bubbles using st.chat_message
- Calls /api/chat with the sessionId cookie so the backend keeps history
- Shows the reply and its sources as "[S1] title - url (score)" per assistant turn
"""
import json
import os

import requests
import streamlit as st

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000").rstrip("/")

st.set_page_config(page_title="News RAG Chat", page_icon="📰", layout="wide")

if "messages" not in st.session_state:
    # Each item: {"role": "user"|"assistant", "content": str, "sources": list}
    st.session_state.messages = []
if "session_id" not in st.session_state:
    st.session_state.session_id = None
if "thinking" not in st.session_state:
    st.session_state.thinking = False
if "pending_prompt" not in st.session_state:
    st.session_state.pending_prompt = None

st.title("News RAG Chat")
st.caption("Answers questions about recent news, grounded on indexed articles with [S#] citations.")


def reset_session(url: str) -> None:
    """Delete the backend history for the current session and start fresh."""
    sid = st.session_state.session_id
    if sid:
        try:
            requests.delete(f"{url}/api/session/{sid}", timeout=10)
        except requests.RequestException as e:
            st.info(e)
    st.session_state.messages = []
    st.session_state.session_id = None
    st.session_state.thinking = False
    st.session_state.pending_prompt = None


with st.sidebar:
    st.subheader("Settings")
    api_url = st.text_input("API Base URL", value=API_BASE_URL, help="Backend FastAPI base URL").rstrip("/")
    show_raw = st.checkbox("Show raw response", value=False)
    if st.session_state.session_id:
        st.caption(f"Session: {st.session_state.session_id}")
    if st.button("New session"):
        reset_session(api_url)
        st.rerun()


def health_check(url: str) -> bool:
    """Return True if the backend health endpoint responds OK."""
    try:
        r = requests.get(f"{url}/health", timeout=5)
        return r.ok
    except requests.RequestException as e:
        st.info(e)
        return False


def render_sources(sources) -> None:
    if not sources:
        return
    with st.expander(f"Sources ({len(sources)})", expanded=False):
        for s in sources:
            score = s.get("score")
            score_txt = f" ({score:.3f})" if isinstance(score, (int, float)) else ""
            st.markdown(f"- [{s.get('id', '?')}] {s.get('title') or 'Untitled'} — {s.get('url', '')}{score_txt}")


ok = health_check(api_url)
if not ok:
    st.warning(
        f"Backend health check failed at {api_url}/health. "
        "Start the API (uvicorn newsrag.main:app) and run the ingestion job first."
    )

for m in st.session_state.messages:
    with st.chat_message(m["role"]):
        st.markdown(m.get("content") or "_No reply returned._")
        if m["role"] == "assistant":
            render_sources(m.get("sources") or [])

if st.session_state.thinking:
    st.chat_input("Ask about the latest news...", disabled=True, key="disabled_input")
else:
    prompt = st.chat_input("Ask about the latest news...", key="enabled_input")
    if prompt:
        st.session_state.messages.append({"role": "user", "content": prompt})
        with st.chat_message("user"):
            st.markdown(prompt)
        st.session_state.pending_prompt = prompt
        st.session_state.thinking = True
        st.rerun()

if st.session_state.thinking and st.session_state.pending_prompt:
    pending = st.session_state.pending_prompt

    with st.chat_message("assistant"):
        if not ok:
            st.info("Backend is not healthy yet. Start the stack and try again.")
        else:
            with st.spinner("Thinking..."):
                cookies = {"sessionId": st.session_state.session_id} if st.session_state.session_id else {}
                try:
                    resp = requests.post(f"{api_url}/api/chat", json={"message": pending}, cookies=cookies, timeout=90)
                    if not resp.ok:
                        st.error(f"Request failed: {resp.status_code} {resp.text}")
                    else:
                        try:
                            data = resp.json()
                        except ValueError:
                            st.error("Response was not valid JSON.")
                            st.code(resp.text or "", language="json")
                            data = {"reply": "", "sources": []}

                        st.session_state.session_id = data.get("sessionId") or st.session_state.session_id
                        reply = data.get("reply", "")
                        sources = data.get("sources", []) or []
                        st.markdown(reply if reply else "_No reply returned._")
                        render_sources(sources)
                        if show_raw:
                            st.code(json.dumps(data, indent=2), language="json")

                        st.session_state.messages.append({"role": "assistant", "content": reply, "sources": sources})
                except requests.RequestException as e:
                    st.error(f"Error calling API: {e}")

    st.session_state.thinking = False
    st.session_state.pending_prompt = None
    st.rerun()
