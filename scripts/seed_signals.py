"""Post sample signals to the webhook.
Useful for exercising the live feed without a TradingView alert."""
import argparse
import random
import time
from datetime import datetime, timedelta, timezone

import requests

from signal_feed.config.settings import get_settings

SYMBOLS = {
    "BTCUSDT": 50000.0,
    "ETHUSDT": 3000.0,
    "SOLUSDT": 150.0,
    "AAPL": 190.0,
    "NVDA": 450.0,
}
SIGNALS = ["BUY", "SELL", "NEUTRAL"]

def seed_signals(count: int, spread_days: int, delay: float, base_url: str):
    """Send ``count`` random signals spread over the past ``spread_days`` days.

    Args:
        count: Number of signals to post
        spread_days: Timestamps are spread over this many past days
        delay: Seconds to wait between posts
        base_url: API base URL
    """
    print("📡 Signal Feed - Seed Signals")
    print("=" * 50)

    now = datetime.now(timezone.utc)
    accepted = 0
    rejected = 0

    for i in range(count):
        symbol = random.choice(list(SYMBOLS))
        price = round(SYMBOLS[symbol] * random.uniform(0.95, 1.05), 2)
        timestamp = now - timedelta(seconds=random.randint(0, spread_days * 86400))

        payload = {
            "symbol": symbol,
            "price": price,
            "signal": random.choice(SIGNALS),
            "timestamp": int(timestamp.timestamp() * 1000),
            "additionalInfo": f"seed #{i + 1}",
        }

        try:
            response = requests.post(f"{base_url}/api/webhook", json=payload, timeout=10)
        except requests.RequestException as e:
            print(f"  ✗ {symbol}: {e}")
            rejected += 1
            continue

        if response.status_code == 200:
            accepted += 1
            print(f"  ✓ {symbol} {payload['signal']} @ {price} (id={response.json().get('id')})")
        else:
            rejected += 1
            print(f"  ✗ {symbol}: HTTP {response.status_code} {response.text}")

        if delay:
            time.sleep(delay)

    print("\n" + "=" * 50)
    print(f"✅ Accepted: {accepted}  ✗ Rejected: {rejected}")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Post sample signals to the webhook")
    parser.add_argument("--count", type=int, default=25)
    parser.add_argument("--days", type=int, default=3)
    parser.add_argument("--delay", type=float, default=0.0)
    parser.add_argument("--base-url", default=get_settings().FEED_BASE_URL)
    args = parser.parse_args()

    seed_signals(args.count, args.days, args.delay, args.base_url)
