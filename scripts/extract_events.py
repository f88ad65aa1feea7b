#!/usr/bin/env python3
"""
Extract raw events from a Keen collection into a JSONL file.

Usage:
    python scripts/extract_events.py purchases
    python scripts/extract_events.py pageviews --days 3 --latest 5000
"""

import argparse
import json

from dotenv import load_dotenv
load_dotenv()

from keen_driver import KeenDriver, to_query_time_frame


parser = argparse.ArgumentParser(description="Extract Keen events to JSONL")
parser.add_argument("collection", help="Event collection to extract")
parser.add_argument("--days", type=int, default=1, help="Extract this_N_days (default: 1)")
parser.add_argument("--latest", type=int, default=0, help="Only the N most recent events (default: all)")
parser.add_argument("--output", help="Output file (default: <collection>_events.jsonl)")
args = parser.parse_args()

client = KeenDriver.from_env()

timeframe = to_query_time_frame(last_n_days=args.days)
print(f"Extracting '{args.collection}' events ({timeframe})...")
events = client.extract(args.collection, timeframe=timeframe, latest=args.latest)

print(f"\n✓ Extracted {len(events)} events")

# Save to file
output_file = args.output or f"{args.collection}_events.jsonl"
with open(output_file, 'w') as f:
    for event in events:
        f.write(json.dumps(event) + '\n')

print(f"✓ Saved {len(events)} events to {output_file}")

# Show summary
if events:
    print(f"\nData summary:")
    days = {}
    countries = {}

    for event in events:
        day = str(event.get('keen', {}).get('timestamp', ''))[:10] or 'unknown'
        days[day] = days.get(day, 0) + 1
        if country := event.get('visitor', {}).get('country'):
            countries[country] = countries.get(country, 0) + 1

    print(f"  Days covered: {len(days)}")
    for day, count in sorted(days.items()):
        print(f"    - {day}: {count}")

    if countries:
        print(f"  Top countries:")
        for country, count in sorted(countries.items(), key=lambda x: -x[1])[:5]:
            print(f"    - {country}: {count}")

client.close()
