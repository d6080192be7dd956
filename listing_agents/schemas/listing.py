"""Listing record schema and its search-document projection."""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _normalize_key(key: str) -> str:
    """Map NearbySchools / nearbySchools / nearby_schools to the snake_case field name."""
    key = re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()
    return key.lstrip("_")


class ListingRecord(BaseModel):
    """
    One scraped property page. Immutable; `id` is assigned by ListingStore.upsert.

    Accepts camelCase (scraper JS), PascalCase (legacy ingestion output) and
    snake_case keys.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    title: Optional[str] = None
    rooms: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    nearby_schools: list[str] = Field(default_factory=list)
    agent_name: Optional[str] = None
    address: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_any_key_case(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = {_normalize_key(str(k)): v for k, v in data.items()}
        if out.get("nearby_schools") is None:
            out["nearby_schools"] = []
        if out.get("rooms") is not None and not isinstance(out["rooms"], str):
            out["rooms"] = str(out["rooms"])
        return out

    @property
    def search_document(self) -> str:
        """Text used both as embedding input and as the search result shown to roles."""
        # Missing fields render as empty text.
        schools = ", ".join(self.nearby_schools)
        return "\n".join([
            "Property listing.",
            f"Title: {self.title or ''}.",
            f"This property has {self.rooms or ''} rooms.",
            f"Current status: {self.status or ''}.",
            f"Located at {self.address or ''}.",
            f"Description: {self.description or ''}.",
            f"Nearby schools include: {schools}.",
            f"Listed by agent: {self.agent_name or ''}.",
        ])

    def to_json_dict(self) -> dict[str, Any]:
        """camelCase dict in the scraper's output format (no id)."""
        return {
            "title": self.title,
            "rooms": self.rooms,
            "status": self.status,
            "description": self.description,
            "nearbySchools": list(self.nearby_schools),
            "agentName": self.agent_name,
            "address": self.address,
        }


class IngestResponse(BaseModel):
    """Response after upserting listings into the store."""

    ingested: int = Field(..., description="Number of listings upserted.")
    ids: list[str] = Field(..., description="Ids assigned to the new records, in input order.")


class ListingStats(BaseModel):
    """Listing store status."""

    collection_name: str
    total_listings: int
    backend: str = Field(..., description="Index backend ('milvus')")
