"""
Wide-column audit copy of posts: Bigtable and an in-memory implementation.

Rows are keyed by post id. Cells live under two families:

  post:user, post:message, post:url   -- url only when an image was stored
  location:lat, location:lon          -- plain decimal strings
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Protocol

from google.cloud import bigtable

from around.geo import format_decimal
from around.models import Post

logger = logging.getLogger(__name__)

POST_FAMILY = "post"
LOCATION_FAMILY = "location"

# family -> qualifier -> cell value
ColumnValues = Dict[str, Dict[str, bytes]]


def post_columns(post: Post) -> ColumnValues:
    columns: ColumnValues = {
        POST_FAMILY: {
            "user": post.user.encode("utf-8"),
            "message": post.message.encode("utf-8"),
        },
        LOCATION_FAMILY: {
            "lat": format_decimal(post.location.lat).encode("utf-8"),
            "lon": format_decimal(post.location.lon).encode("utf-8"),
        },
    }
    if post.url:
        columns[POST_FAMILY]["url"] = post.url.encode("utf-8")
    return columns


def cell_timestamp(now: datetime | None = None) -> datetime:
    """Current UTC time truncated to the millisecond granularity Bigtable keeps."""
    now = now or datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


class ColumnStore(Protocol):
    """Interface for the append-only column copy."""

    def put_row(
        self, row_key: str, columns: ColumnValues, timestamp: datetime
    ) -> None:
        ...


@dataclass
class Cell:
    value: bytes
    timestamp: datetime


@dataclass
class InMemoryColumnStore:
    """Keeps every cell version, newest last, like a sparse wide-column table."""

    rows: Dict[str, Dict[tuple[str, str], list[Cell]]] = field(default_factory=dict)

    def put_row(
        self, row_key: str, columns: ColumnValues, timestamp: datetime
    ) -> None:
        row = self.rows.setdefault(row_key, {})
        for family, qualifiers in columns.items():
            for qualifier, value in qualifiers.items():
                row.setdefault((family, qualifier), []).append(
                    Cell(value=value, timestamp=timestamp)
                )

    def read_latest(self, row_key: str) -> Dict[str, bytes]:
        """Latest value per "family:qualifier" for one row."""
        row = self.rows.get(row_key, {})
        return {
            f"{family}:{qualifier}": cells[-1].value
            for (family, qualifier), cells in row.items()
        }

    def reset(self) -> None:
        self.rows.clear()


class BigtableColumnStore:
    """
    Bigtable-backed store. Uses Application Default Credentials; the table and
    both column families must already exist.
    """

    def __init__(self, project_id: str, instance_id: str, table_id: str = "post"):
        if not project_id or not instance_id:
            raise ValueError(
                "BIGTABLE_PROJECT_ID and BIGTABLE_INSTANCE_ID are required"
            )
        self._client = bigtable.Client(project=project_id)
        self._table = self._client.instance(instance_id).table(table_id)

    def put_row(
        self, row_key: str, columns: ColumnValues, timestamp: datetime
    ) -> None:
        row = self._table.direct_row(row_key)
        for family, qualifiers in columns.items():
            for qualifier, value in qualifiers.items():
                row.set_cell(family, qualifier, value, timestamp=timestamp)
        status = row.commit()
        if status.code != 0:
            raise RuntimeError(
                f"Bigtable mutation for row {row_key} failed: {status.message}"
            )
        logger.info("Row %s saved to column store", row_key)
