# Listing JSON persistence. Single place for "file ↔ ListingRecord list".
# The file holds a JSON array of listing objects as written by the scraper.

import json
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError

from listing_agents.schemas.listing import ListingRecord

logger = logging.getLogger(__name__)


def parse_listings(raw: str | bytes) -> List[ListingRecord]:
    """Parse a JSON array of listing objects. Raises ValueError on malformed input."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Listing file is not valid JSON: {e}") from e
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("Listing file must contain a JSON array")
    records: List[ListingRecord] = []
    for i, item in enumerate(data):
        try:
            records.append(ListingRecord.model_validate(item))
        except ValidationError as e:
            raise ValueError(f"Listing #{i} is invalid: {e}") from e
    return records


def load_listings(path: str | Path) -> List[ListingRecord]:
    """Read listings from path. A missing file yields no listings."""
    path = Path(path)
    if not path.is_file():
        logger.warning("[loader:load_listings] file not found: %s", path)
        return []
    records = parse_listings(path.read_bytes())
    logger.info("[loader:load_listings] path=%s listings=%d", path, len(records))
    return records


def save_listings(path: str | Path, records: List[ListingRecord]) -> None:
    """Write listings as a JSON array (camelCase keys), creating parent dirs."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps([r.to_json_dict() for r in records], ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    logger.info("[loader:save_listings] path=%s listings=%d", path, len(records))
