"""
Pydantic schemas for the HTTP surface.
"""

from __future__ import annotations

from pydantic import BaseModel

from around.models import Post


class LocationResponse(BaseModel):
    lat: float
    lon: float


class PostResponse(BaseModel):
    user: str
    message: str
    location: LocationResponse
    url: str = ""

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(
            user=post.user,
            message=post.message,
            location=LocationResponse(lat=post.location.lat, lon=post.location.lon),
            url=post.url,
        )


class HealthResponse(BaseModel):
    status: str
