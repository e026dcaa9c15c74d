"""
Geo index for posts: Elasticsearch and an in-memory implementation.

Both sides decode hits straight into `Post`; the index mapping must declare
`location` as a `geo_point` or radius queries will not match anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import islice
from typing import Optional, Protocol

from elasticsearch import Elasticsearch
from elasticsearch.helpers import scan

from around.geo import format_decimal, haversine_km
from around.models import Post

logger = logging.getLogger(__name__)

POST_MAPPINGS: dict = {
    "properties": {
        "user": {"type": "keyword"},
        "message": {"type": "text"},
        "location": {"type": "geo_point"},
        "url": {"type": "keyword", "index": False},
    }
}

# Slack for float rounding when a point sits exactly on the radius.
DISTANCE_TOLERANCE_KM = 1e-6

# Elasticsearch's default `index.max_result_window`; from + size beyond it is
# rejected by the cluster.
MAX_RESULT_WINDOW = 10000

SCAN_BATCH_SIZE = 1000


def format_distance(radius_km: float) -> str:
    return f"{format_decimal(radius_km)}km"


def build_radius_query(lat: float, lon: float, radius_km: float) -> dict:
    """Query DSL selecting every document within `radius_km` of (lat, lon)."""
    return {
        "bool": {
            "filter": {
                "geo_distance": {
                    "distance": format_distance(radius_km),
                    "location": {"lat": lat, "lon": lon},
                }
            }
        }
    }


class GeoIndex(Protocol):
    """Interface for the searchable post index."""

    def index_exists(self) -> bool:
        ...

    def create_index(self, mappings: dict = POST_MAPPINGS) -> None:
        ...

    def put(self, post_id: str, post: Post) -> None:
        ...

    def query_radius(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Post]:
        ...


def ensure_index(index: GeoIndex) -> bool:
    """
    Create the index with the geo-point mapping if it is missing.

    Run once before the service accepts requests. Returns True when the index
    was created.
    """
    if index.index_exists():
        return False
    index.create_index(POST_MAPPINGS)
    logger.info("Created geo index with geo_point mapping on 'location'")
    return True


@dataclass
class InMemoryGeoIndex:
    """Haversine scan over a dict; documents keep insertion order."""

    mappings: Optional[dict] = None
    documents: dict[str, Post] = field(default_factory=dict)

    def index_exists(self) -> bool:
        return self.mappings is not None

    def create_index(self, mappings: dict = POST_MAPPINGS) -> None:
        if self.mappings is not None:
            raise ValueError("index already exists")
        self.mappings = mappings

    def put(self, post_id: str, post: Post) -> None:
        self.documents[post_id] = Post.from_document(post_id, post.as_document())

    def query_radius(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Post]:
        hits = [
            post
            for post in list(self.documents.values())
            if haversine_km(lat, lon, post.location.lat, post.location.lon)
            <= radius_km + DISTANCE_TOLERANCE_KM
        ]
        end = None if limit is None else offset + limit
        return hits[offset:end]

    def reset(self) -> None:
        """Clear all documents (useful in tests)."""
        self.documents.clear()


class ElasticsearchGeoIndex:
    """
    Elasticsearch-backed index. Accepts any cluster URL reachable without
    sniffing; `request_timeout` bounds every call.
    """

    def __init__(self, url: str, index: str, request_timeout: float = 10.0):
        if not url:
            raise ValueError("ES_URL is required for ElasticsearchGeoIndex")
        self.index = index
        self._client = Elasticsearch(url, request_timeout=request_timeout)

    def index_exists(self) -> bool:
        return bool(self._client.indices.exists(index=self.index))

    def create_index(self, mappings: dict = POST_MAPPINGS) -> None:
        self._client.indices.create(index=self.index, mappings=mappings)

    def put(self, post_id: str, post: Post) -> None:
        # refresh=true makes the post visible to the very next search.
        self._client.index(
            index=self.index,
            id=post_id,
            document=post.as_document(),
            refresh=True,
        )
        logger.info("Post %s saved to index: %s", post_id, post.message)

    def query_radius(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Post]:
        query = build_radius_query(lat, lon, radius_km)
        if limit is None:
            return self._scan_radius(query, offset)

        response = self._client.search(
            index=self.index, query=query, from_=offset, size=limit
        )
        hits = response["hits"]["hits"]
        logger.info(
            "Radius query (%s, %s, %s) took %sms, %d hits",
            lat,
            lon,
            format_distance(radius_km),
            response["took"],
            len(hits),
        )
        return [Post.from_document(hit["_id"], hit["_source"]) for hit in hits]

    def _scan_radius(self, query: dict, offset: int) -> list[Post]:
        """Every hit of `query` via the scroll API, skipping the first `offset`."""
        hits = scan(
            self._client,
            index=self.index,
            query={"query": query},
            size=SCAN_BATCH_SIZE,
        )
        posts = [
            Post.from_document(hit["_id"], hit["_source"])
            for hit in islice(hits, offset, None)
        ]
        logger.info("Radius scan returned %d hits", len(posts))
        return posts

    def close(self) -> None:
        self._client.close()
