"""
Domain types shared by the store adapters and the orchestrators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Optional


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float

    def as_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}


@dataclass
class Post:
    """A user post as persisted in every store. Write-once."""

    id: str
    user: str
    message: str
    location: Location
    url: str = ""

    def as_document(self) -> dict:
        """Geo-index document body; `id` travels as the document key."""
        return {
            "user": self.user,
            "message": self.message,
            "location": self.location.as_dict(),
            "url": self.url,
        }

    @classmethod
    def from_document(cls, post_id: str, source: dict) -> "Post":
        location = source.get("location") or {}
        return cls(
            id=post_id,
            user=source.get("user", ""),
            message=source.get("message", ""),
            location=Location(
                lat=float(location["lat"]), lon=float(location["lon"])
            ),
            url=source.get("url") or "",
        )


@dataclass
class PostSubmission:
    """
    Validated input to an ingestion.

    `image` is a readable binary stream; it is consumed by the object store
    write and not retained.
    """

    user: str
    message: str
    lat: float
    lon: float
    image: Optional[BinaryIO] = field(default=None, repr=False)
    content_type: Optional[str] = None
