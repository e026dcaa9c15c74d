"""
Exception types raised by the ingestion and search pipeline.
"""

from __future__ import annotations


class AroundError(Exception):
    """Base class for errors raised by the post service."""


class InvalidSubmissionError(AroundError):
    """A post submission failed validation before any store was touched."""


class InvalidQueryError(AroundError):
    """A search query carried a malformed coordinate, radius or page."""


class IngestError(AroundError):
    """
    A store write failed part way through an ingestion.

    Earlier writes are not undone; `stage` names the step that failed so the
    outbox record and the logs can be reconciled against each store.
    """

    stage = "unknown"

    def __init__(self, post_id: str, message: str = ""):
        self.post_id = post_id
        super().__init__(
            message or f"Ingestion of post {post_id} failed at {self.stage}"
        )


class ImageStoreError(IngestError):
    stage = "object_store"


class GeoIndexWriteError(IngestError):
    stage = "geo_index"


class ColumnStoreWriteError(IngestError):
    stage = "column_store"


class OutboxError(IngestError):
    """The ingestion record could not be created or advanced."""

    stage = "outbox"


class SearchError(AroundError):
    """The geo index could not answer a radius query."""
