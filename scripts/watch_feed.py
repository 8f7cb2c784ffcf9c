"""Console viewer.
Loads the feed, then redraws whenever a change hint arrives."""
import argparse
import asyncio

from signal_feed.client.engine import ScrollPosition
from signal_feed.client.render import render_text
from signal_feed.client.session import FeedViewer
from signal_feed.client.state import ClientViewState, ViewPhase
from signal_feed.config.settings import get_settings

def redraw(state: ClientViewState):
    print("\033[2J\033[H", end="")
    print("📡 Signal Feed (Ctrl+C to quit)")
    print("=" * 50)
    print(render_text(state))

async def watch(pages: int):
    """Run a viewer, revealing ``pages`` extra pages up front."""
    viewer = FeedViewer.from_settings(get_settings(), on_change=redraw)
    runner = asyncio.create_task(viewer.run())

    # Pretend the terminal is always scrolled to the bottom
    bottom = ScrollPosition(scroll_top=0, client_height=1, scroll_height=1)
    while viewer.state.phase in (ViewPhase.IDLE, ViewPhase.LOADING_INITIAL) and not runner.done():
        await asyncio.sleep(0.1)
    for _ in range(pages):
        if not await viewer.scroll(bottom):
            break

    await runner

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Watch the live signal feed")
    parser.add_argument("--pages", type=int, default=0, help="Extra pages to load after the first")
    args = parser.parse_args()

    try:
        asyncio.run(watch(args.pages))
    except KeyboardInterrupt:
        print("\nStopped.")
