"""Streamlit dashboard for the signal feed."""

import asyncio

import requests
import streamlit as st

from signal_feed.client.engine import ReconciliationEngine
from signal_feed.client.render import build_view
from signal_feed.client.state import ViewPhase
from signal_feed.client.transport import FeedApiClient
from signal_feed.config.settings import get_settings

settings = get_settings()


# Helper function to format signals consistently
def format_signal(signal):
    """Format signal labels for consistent display"""
    signal_mapping = {
        "BUY": "📈 BUY",
        "SELL": "📉 SELL",
        "NEUTRAL": "➖ NEUTRAL",
    }
    return signal_mapping.get(signal.upper(), f"📊 {signal}")


def get_engine():
    """One reconciliation engine per browser session."""
    if "feed_engine" not in st.session_state:
        fetcher = FeedApiClient(
            settings.FEED_BASE_URL,
            page_size=settings.CLIENT_PAGE_SIZE,
            timeout=settings.CLIENT_FETCH_TIMEOUT,
        )
        st.session_state.feed_engine = ReconciliationEngine(
            fetcher,
            fetch_timeout=settings.CLIENT_FETCH_TIMEOUT,
            reload_mode=settings.CLIENT_RELOAD_MODE,
            catch_up_max_pages=settings.CATCH_UP_MAX_PAGES,
        )
    return st.session_state.feed_engine


def check_api_status():
    """Return (label, healthy) for the sidebar."""
    try:
        response = requests.get(f"{settings.FEED_BASE_URL}/health", timeout=5)
    except requests.RequestException:
        return "🔴 Offline", False
    if response.status_code != 200:
        return "🔴 Error", False
    data = response.json()
    if data.get("status") != "healthy":
        return "🟡 Database disconnected", False
    return f"🟢 Connected ({data.get('viewers', 0)} live viewers)", True


st.set_page_config(page_title="Signal Feed", layout="centered")
st.title("📡 Trading Signal Feed")

engine = get_engine()

# Sidebar
status_label, _ = check_api_status()
st.sidebar.markdown("### System Status")
st.sidebar.markdown(f"**API:** {status_label}")
st.sidebar.markdown("### Feed")

if st.sidebar.button("🔄 Check for new signals"):
    # Same path a push hint takes
    asyncio.run(engine.on_hint("newData"))

if st.sidebar.button("♻️ Full reload"):
    asyncio.run(engine.reload())

if engine.state.phase == ViewPhase.IDLE:
    with st.spinner("Loading signals..."):
        asyncio.run(engine.start())

state = engine.state
st.sidebar.caption(
    f"{state.rendered_count} signals shown · page {state.current_page} · "
    f"{'more available' if state.has_more_data else 'end of feed'}"
)

if state.phase == ViewPhase.ERROR:
    st.error(f"Failed to load data. {state.error}")
    st.stop()

groups = build_view(state)
if not groups:
    st.info("No signals yet.")

for group in groups:
    st.subheader(group.header)
    for card in group.cards:
        event = card.event
        with st.container(border=True):
            left, right = st.columns([3, 1])
            with left:
                title = f"**{event.symbol}** · {format_signal(event.signal)}"
                if card.is_new:
                    title += " 🆕"
                st.markdown(title)
                st.markdown(f"Price: `{event.price:g}`")
                if event.additional_info:
                    st.caption(f"Note: {event.additional_info}")
            with right:
                st.markdown(f"#{card.rank}")
                st.caption(card.time_label)

# Streamlit has no scroll events; the button stands in for reaching the bottom
if state.has_more_data and state.phase == ViewPhase.READY:
    if st.button("Load more"):
        asyncio.run(engine.load_more())
        st.rerun()
elif groups:
    st.caption("End of feed")
