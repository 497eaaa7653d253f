"""Event models for the connpass events feed."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Event(BaseModel):
    """A connpass event enriched with location flags.

    ``updated_at`` is kept exactly as the API returns it; it is the freshness
    marker compared against the stored one to decide reprocessing.
    """

    id: int
    title: str
    catch: str = Field(default="", description="Short tagline")
    description: str = Field(default="", description="HTML description")
    url: str = ""
    started_at: datetime
    ended_at: datetime
    place: str | None = None
    address: str | None = None
    accepted: int = 0
    limit: int | None = None
    updated_at: str | None = None

    # Derived at ingestion time
    is_online: bool = False
    is_local: bool = False

    @field_validator("catch", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v: str | None) -> str:
        return v or ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Event:
        """Create from a connpass API v2 event object.

        Location flags are left unset; the provider fills them in.
        """
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            catch=data.get("catch"),
            description=data.get("description"),
            url=data.get("url", ""),
            started_at=data["started_at"],
            ended_at=data["ended_at"],
            place=data.get("place"),
            address=data.get("address"),
            accepted=data.get("accepted") or 0,
            limit=data.get("limit"),
            updated_at=data.get("updated_at"),
        )
