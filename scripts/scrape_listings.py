#!/usr/bin/env python3
"""
Scrape listing pages into the listings JSON file used by the agents.

Reads one URL per line from the input file, opens each page in Chromium
(Playwright), extracts the listing fields, and writes a JSON array.

Run from project root:

    python scripts/scrape_listings.py
    python scripts/scrape_listings.py --input input-urls.txt --output data/property_listings.json --headed

Install the browser once with `playwright install chromium`.
"""

import argparse
import logging
import sys
from pathlib import Path

# Project root on path so "listing_agents" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from listing_agents.core.config import (
    INPUT_URLS_FILE,
    LISTINGS_FILE,
    LOG_LEVEL,
    SCRAPE_DELAY_SECONDS,
    SCRAPE_HEADLESS,
)
from listing_agents.ingest.scraper import run_scraper


def main() -> None:
    parser = argparse.ArgumentParser(description="Scrape listing pages into a JSON file.")
    parser.add_argument("--input", default=INPUT_URLS_FILE, help="File with one listing URL per line.")
    parser.add_argument("--output", default=LISTINGS_FILE, help="Where to write the listings JSON array.")
    parser.add_argument("--headed", action="store_true", help="Show the browser window.")
    parser.add_argument("--delay", type=float, default=SCRAPE_DELAY_SECONDS,
                        help="Seconds to wait between pages.")
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL)
    listings = run_scraper(
        input_file=args.input,
        output_file=args.output,
        headless=SCRAPE_HEADLESS and not args.headed,
        delay=args.delay,
    )
    for listing in listings:
        print(f"Title: {listing.title}")
        print(f"Rooms: {listing.rooms}")
        print(f"Status: {listing.status}")
        print(f"Agent: {listing.agent_name}")
        print(f"Address: {listing.address}")
        print("Nearby Schools:")
        for school in listing.nearby_schools:
            print(f" - {school}")
    print(f"Done. Wrote {len(listings)} listings to {args.output}.")


if __name__ == "__main__":
    main()
