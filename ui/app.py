"""Streamlit UI for the RouteRAG demo.

- Sidebar controls (API URL, domain, show raw, clear history)
- Single-turn backend call to /query (UI keeps a local history)
- Shows answer, confidence, relevant items, waypoints on a map, and the map deep link
"""
import json
import os

import requests
import streamlit as st

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000").rstrip("/")

st.set_page_config(page_title="RouteRAG Demo", page_icon="🧭", layout="wide")

if "history" not in st.session_state:
    # Each item: {"query": str, "domain": str, "data": dict}
    st.session_state.history = []

st.title("RouteRAG: Grounded Route Planning")
st.caption(
    "Finds the stored records closest to your request, asks the model for a structured answer, "
    "then geocodes the chosen clients and draws the route."
)

with st.sidebar:
    st.subheader("Settings")
    api_url = st.text_input("API Base URL", value=API_BASE_URL, help="Backend FastAPI base URL")
    domain = st.selectbox("Domain", options=["clients", "invoices"], index=0)
    show_raw = st.checkbox("Show raw response", value=False)
    if st.button("Clear history"):
        st.session_state.history = []
        st.rerun()
    if st.button("Populate missing coordinates"):
        with st.spinner("Geocoding (one address per second)..."):
            try:
                r = requests.post(f"{api_url}/coordinates/populate", params={"domain": "clients"}, timeout=600)
                if r.ok:
                    d = r.json()
                    st.success(f"{d.get('message')} Updated: {len(d.get('updated', []))}, failed: {len(d.get('failed', []))}")
                else:
                    st.error(f"Request failed: {r.status_code} {r.text}")
            except requests.RequestException as e:
                st.error(f"Error calling API: {e}")


def health_check(url: str) -> bool:
    """Return True if the backend health endpoint responds OK."""
    try:
        r = requests.get(f"{url}/health", timeout=5)
        return r.ok
    except requests.RequestException as e:
        st.info(e)
        return False


def render_result(data: dict) -> None:
    st.markdown(data.get("answer") or "_No answer returned._")
    st.caption(
        f"Confidence: {data.get('confidence', 0):.2f} • Items: {len(data.get('relevantItems', []))} "
        f"• Waypoints: {len(data.get('waypoints', []))}"
    )
    items = data.get("relevantItems") or []
    if items:
        with st.expander(f"Relevant items ({len(items)})", expanded=False):
            st.table(items)

    waypoints = data.get("waypoints") or []
    if waypoints:
        st.table([{"id": w["id"], "label": w.get("label"), "address": w["address"]} for w in waypoints])
        points = [
            {"lat": w["coordinates"][0], "lon": w["coordinates"][1]}
            for w in waypoints
            if w.get("coordinates")
        ]
        if points:
            st.map(points)
    unresolved = data.get("unresolved") or []
    if unresolved:
        st.warning(f"Could not locate: {', '.join(unresolved)}")
    if data.get("fallbackUrl"):
        st.markdown(f"[Open route in Google Maps]({data['fallbackUrl']})")
    if data.get("routeGeometry") is None and waypoints:
        st.caption("Route geometry unavailable; use the map link.")


ok = health_check(api_url)
if not ok:
    st.warning(f"Backend health check failed at {api_url}/health.")

for h in st.session_state.history:
    with st.chat_message("user"):
        st.markdown(f"**[{h['domain']}]** {h['query']}")
    with st.chat_message("assistant"):
        render_result(h["data"])

prompt = st.chat_input("e.g. Plan a route to our clients in Berlin and Potsdam")
if prompt:
    with st.chat_message("user"):
        st.markdown(f"**[{domain}]** {prompt}")
    with st.chat_message("assistant"):
        if not ok:
            st.info("Backend is not healthy yet. Start the stack and try again.")
        else:
            with st.spinner("Thinking..."):
                try:
                    resp = requests.post(f"{api_url}/query", json={"query": prompt, "domain": domain}, timeout=180)
                    if not resp.ok:
                        st.error(f"Request failed: {resp.status_code} {resp.text}")
                    else:
                        data = resp.json()
                        render_result(data)
                        if show_raw:
                            st.code(json.dumps(data, indent=2), language="json")
                        st.session_state.history.append({"query": prompt, "domain": domain, "data": data})
                except requests.RequestException as e:
                    st.error(f"Error calling API: {e}")
