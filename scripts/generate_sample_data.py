import random
import time
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv

from keen_driver import (
    KeenDriver,
    DriverError,
    RateLimitError,
    IpToGeo,
    UserAgentParser,
    UrlParser,
    ReferrerParser,
)

load_dotenv()

# Simulated visitors
USER_IDS = [f"user_{i:04d}" for i in range(1, 501)]

IP_ADDRESSES = ["8.8.8.8", "1.1.1.1", "185.23.120.5", "91.198.174.192", "151.101.1.69"]

USER_AGENTS = [
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36",
]

REFERRERS = [
    "https://www.google.com/search?q=widgets",
    "https://www.facebook.com/",
    "https://news.ycombinator.com/",
]

PRODUCTS = [
    {"id": "prod_001", "name": "Wireless Headphones", "category": "Electronics", "price": 79.99},
    {"id": "prod_002", "name": "Running Shoes", "category": "Sports", "price": 129.99},
    {"id": "prod_003", "name": "Coffee Maker", "category": "Home", "price": 89.99},
    {"id": "prod_004", "name": "Laptop Backpack", "category": "Accessories", "price": 49.99},
    {"id": "prod_005", "name": "Yoga Mat", "category": "Sports", "price": 29.99},
    {"id": "prod_006", "name": "Smart Watch", "category": "Electronics", "price": 299.99},
]

COUNTRIES = ["CZ", "SK", "US", "UK", "DE"]

# Enrichment applied to every pageview
PAGEVIEW_ADD_ONS = [
    IpToGeo("visitor.ip", "visitor.geo"),
    UserAgentParser("visitor.user_agent", "visitor.tech"),
    UrlParser("page.url", "page.parsed"),
    ReferrerParser("page.referrer", "page.url", "page.referrer_info"),
]


def generate_timestamp(days_ago=0, hours_ago=0):
    """ISO-8601 timestamp in the past, used as keen.timestamp"""
    stamp = datetime.now(timezone.utc) - timedelta(days=days_ago, hours=hours_ago)
    return stamp.isoformat()


def create_visit(user_id, day_offset):
    """Build one visit: (collection, event, add_ons) tuples"""
    visitor = {
        "id": user_id,
        "ip": random.choice(IP_ADDRESSES),
        "user_agent": random.choice(USER_AGENTS),
        "country": random.choice(COUNTRIES),
    }
    referrer = random.choice(REFERRERS)
    events = []

    # 1. Pageviews
    for i in range(random.randint(2, 8)):
        product = random.choice(PRODUCTS)
        events.append((
            "pageviews",
            {
                "visitor": visitor,
                "page": {
                    "url": f"https://shop.example.com/products/{product['id']}",
                    "referrer": referrer,
                },
                "product": product,
                "keen": {"timestamp": generate_timestamp(day_offset, -i * 0.1)},
            },
            PAGEVIEW_ADD_ONS,
        ))

    # 2. Purchase (30% conversion)
    if random.random() < 0.3:
        cart = random.sample(PRODUCTS, random.randint(1, 3))
        events.append((
            "purchases",
            {
                "visitor": visitor,
                "items": [item["id"] for item in cart],
                "price": round(sum(item["price"] for item in cart), 2),
                "payment_method": random.choice(["credit_card", "paypal", "apple_pay"]),
                "keen": {"timestamp": generate_timestamp(day_offset, -1)},
            },
            [IpToGeo("visitor.ip", "visitor.geo")],
        ))

    return events


def main():
    client = KeenDriver.from_env()

    print("🚀 Generating sample data for Keen...\n")

    all_events = []
    for day in range(7):
        daily_users = random.sample(USER_IDS, random.randint(20, 60))
        print(f"📅 Day {day + 1}/7: {len(daily_users)} visitors")
        for user_id in daily_users:
            all_events.extend(create_visit(user_id, day))

    revenue = sum(event.get("price", 0) for collection, event, _ in all_events if collection == "purchases")
    print(f"\n📊 Generated {len(all_events)} events")
    print(f"💰 Total revenue: ${revenue:.2f}\n")

    sent = 0
    try:
        for collection, event, add_ons in all_events:
            try:
                client.add_event(collection, event, add_ons=add_ons)
            except RateLimitError as e:
                wait = e.details.get("retry_after") or 60
                print(f"⏳ Rate limited, waiting {wait}s...")
                time.sleep(wait)
                client.add_event(collection, event, add_ons=add_ons)

            sent += 1
            if sent % 100 == 0:
                print(f"✓ Sent {sent}/{len(all_events)} events")

    except DriverError as e:
        print(f"❌ {e}")
        print(f"   Details: {e.details}")

    finally:
        client.close()

    print(f"\n✅ Done! Sent {sent} events.")


if __name__ == "__main__":
    main()
