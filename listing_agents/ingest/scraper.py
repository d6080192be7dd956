"""
Listing scraper: visit listing pages with headless Chromium and extract one record per page.

Responsibility: URL file in, ListingRecord list out. Selectors are tied to the
current listing-site markup; a missing element yields null for that field.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, List

from playwright.async_api import Page, async_playwright

from listing_agents.core.config import (
    INPUT_URLS_FILE,
    LISTINGS_FILE,
    SCRAPE_DELAY_SECONDS,
    SCRAPE_HEADLESS,
    SCRAPE_TIMEOUT_MS,
)
from listing_agents.ingest.loader import save_listings
from listing_agents.schemas.listing import ListingRecord

logger = logging.getLogger(__name__)

EXTRACT_LISTING_JS = """
() => {
    const title =
        document.getElementsByClassName('property-info-address')[0]?.innerText ?? null;
    const rooms =
        document
            .getElementsByClassName('property-info__primary-features')[0]
            ?.getAttribute('aria-label') ?? null;
    const status =
        document
            .getElementsByClassName('property-info__footer-content')[0]
            ?.getElementsByTagName('p')[0]
            ?.innerText ?? null;
    const description =
        document.querySelector('[data-testid=PropertyDescription]')?.innerText ?? null;
    const nearbySchools =
        Array.from(document.querySelectorAll('span.nearby-schools__name')).map(x => x.innerText);
    const agentName =
        document
            .getElementsByClassName('agent-info__contact-info')[0]
            ?.getElementsByTagName('a')[0]
            ?.innerText ?? null;
    const address =
        document
            .getElementsByClassName('contact-agent-panel__traffic-driver')[0]
            ?.innerText ?? null;
    return {title, rooms, status, description, nearbySchools, agentName, address};
}
"""

BROWSER_ARGS = ["--start-maximized", "--disable-blink-features=AutomationControlled"]


def read_urls(path: str | Path) -> List[str]:
    """One URL per line; blank lines are skipped."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


async def scrape_listing(page: Page, url: str) -> ListingRecord:
    """Load url in page, wait for the footer, and extract the listing fields."""
    await page.goto(url, wait_until="networkidle", timeout=SCRAPE_TIMEOUT_MS)
    await page.wait_for_selector("footer", timeout=SCRAPE_TIMEOUT_MS)
    data: dict[str, Any] = await page.evaluate(EXTRACT_LISTING_JS)
    record = ListingRecord.model_validate(data or {})
    logger.info("[scraper:scrape_listing] url=%s title=%r rooms=%r status=%r schools=%d",
                url, record.title, record.rooms, record.status, len(record.nearby_schools))
    return record


async def scrape_urls(
    urls: List[str],
    headless: bool = SCRAPE_HEADLESS,
    delay: float = SCRAPE_DELAY_SECONDS,
) -> List[ListingRecord]:
    """Scrape each URL in its own page, pausing `delay` seconds between pages."""
    listings: List[ListingRecord] = []
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=headless, args=BROWSER_ARGS)
        try:
            for i, url in enumerate(urls):
                page = await browser.new_page()
                try:
                    listings.append(await scrape_listing(page, url))
                finally:
                    await page.close()
                if delay > 0 and i < len(urls) - 1:
                    await asyncio.sleep(delay)
        finally:
            await browser.close()
    return listings


def run_scraper(
    input_file: str | Path = INPUT_URLS_FILE,
    output_file: str | Path = LISTINGS_FILE,
    headless: bool = SCRAPE_HEADLESS,
    delay: float = SCRAPE_DELAY_SECONDS,
) -> List[ListingRecord]:
    """Scrape every URL in input_file and write the listings JSON to output_file."""
    urls = read_urls(input_file)
    logger.info("[scraper:run_scraper] IN  urls=%d input=%s", len(urls), input_file)
    listings = asyncio.run(scrape_urls(urls, headless=headless, delay=delay))
    save_listings(output_file, listings)
    logger.info("[scraper:run_scraper] OUT listings=%d output=%s", len(listings), output_file)
    return listings
