"""
Radius search over the geo index with deny-list filtering of results.
"""

from __future__ import annotations

import logging
from typing import Optional

from around.content_filter import ContentFilter
from around.errors import InvalidQueryError, SearchError
from around.geo import parse_float, parse_lat_lon
from around.geo_index import MAX_RESULT_WINDOW, GeoIndex, format_distance
from around.models import Post

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 200.0
MAX_PAGE_SIZE = 1000


def parse_radius(raw: str | float | None, default: float = DEFAULT_RADIUS_KM) -> float:
    """Kilometers from the `range` parameter; blank means the default radius."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        radius = parse_float(raw, "range")
    except ValueError as exc:
        raise InvalidQueryError(str(exc)) from exc
    if radius <= 0:
        raise InvalidQueryError(f"range must be positive, got {raw!r}")
    return radius


class PostSearcher:
    """
    Builds the radius query, runs it and drops filtered posts.

    Without a `limit` every match within the radius is returned in one
    response. `offset` and `limit` are opt-in; a page is cut by the index
    before filtering, so it can come back shorter than `limit` when some of
    its posts were filtered out.
    """

    def __init__(
        self,
        *,
        geo_index: GeoIndex,
        content_filter: ContentFilter,
        default_radius_km: float = DEFAULT_RADIUS_KM,
        max_page_size: int = MAX_PAGE_SIZE,
        max_result_window: int = MAX_RESULT_WINDOW,
    ):
        self.geo_index = geo_index
        self.content_filter = content_filter
        self.default_radius_km = default_radius_km
        self.max_page_size = max_page_size
        self.max_result_window = max_result_window

    def search(
        self,
        lat: str | float | None,
        lon: str | float | None,
        radius_km: str | float | None = None,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Post]:
        try:
            lat, lon = parse_lat_lon(lat, lon)
        except ValueError as exc:
            raise InvalidQueryError(str(exc)) from exc
        radius = parse_radius(radius_km, self.default_radius_km)
        if offset < 0:
            raise InvalidQueryError(f"offset must be >= 0, got {offset}")
        if limit is not None:
            if not 1 <= limit <= self.max_page_size:
                raise InvalidQueryError(
                    f"limit must be within [1, {self.max_page_size}], got {limit}"
                )
            if offset + limit > self.max_result_window:
                raise InvalidQueryError(
                    f"offset + limit must not exceed {self.max_result_window}"
                )

        logger.info(
            "Search received: %s %s %s", lat, lon, format_distance(radius)
        )
        try:
            hits = self.geo_index.query_radius(
                lat, lon, radius, offset=offset, limit=limit
            )
        except Exception as exc:
            logger.exception("Radius query failed: %s", exc)
            raise SearchError(f"Radius query around ({lat}, {lon}) failed") from exc

        posts = []
        for post in hits:
            if self.content_filter.is_filtered(post.message):
                logger.debug("Filtered post %s by %s", post.id, post.user)
                continue
            posts.append(post)
        logger.info("Found %d posts, %d after filtering", len(hits), len(posts))
        return posts
