"""
Post ingestion: sequential writes to the object store, geo index and column
store, tracked in the outbox.

Order matters. The image goes first so the post carries its URL before it is
indexed or copied to the column store. Each step gates the next; a failure
stops the ingestion and is raised to the caller as the stage-specific
`IngestError`, with earlier writes left in place. Index or column failures
leave the outbox record incomplete and push the post id onto the reconcile
queue so the worker can finish the missing writes later.

An outbox failure is raised as `OutboxError`. Once the record exists, the
post id is queued as well, since a store write may already have landed that
the record does not show.
"""

from __future__ import annotations

import logging
import uuid
from typing import BinaryIO, Callable, Optional

from around.column_store import ColumnStore, cell_timestamp, post_columns
from around.errors import (
    ColumnStoreWriteError,
    GeoIndexWriteError,
    ImageStoreError,
    IngestError,
    InvalidSubmissionError,
    OutboxError,
)
from around.geo import parse_lat_lon
from around.geo_index import GeoIndex
from around.models import Location, Post, PostSubmission
from around.outbox import (
    STEP_COLUMNS_WRITTEN,
    STEP_IMAGE_STORED,
    STEP_INDEXED,
    IngestionRecord,
    OutboxClient,
)
from around.queue import ReconcileQueue
from around.storage import ObjectStore

logger = logging.getLogger(__name__)


def new_post_id() -> str:
    """128-bit random id."""
    return uuid.uuid4().hex


def build_submission(
    user: str,
    message: str,
    raw_lat: str | float | None,
    raw_lon: str | float | None,
    image: Optional[BinaryIO] = None,
    content_type: Optional[str] = None,
) -> PostSubmission:
    """
    Validate raw request fields. Malformed or missing coordinates are rejected
    rather than defaulted, since a post without a real point cannot be found
    by radius search.
    """
    if not user:
        raise InvalidSubmissionError("user is required")
    try:
        lat, lon = parse_lat_lon(raw_lat, raw_lon)
    except ValueError as exc:
        raise InvalidSubmissionError(str(exc)) from exc
    return PostSubmission(
        user=user,
        message=message or "",
        lat=lat,
        lon=lon,
        image=image,
        content_type=content_type,
    )


class PostIngestor:
    def __init__(
        self,
        *,
        object_store: ObjectStore,
        geo_index: GeoIndex,
        column_store: ColumnStore,
        outbox: OutboxClient,
        reconcile_queue: ReconcileQueue,
        id_factory: Callable[[], str] = new_post_id,
    ):
        self.object_store = object_store
        self.geo_index = geo_index
        self.column_store = column_store
        self.outbox = outbox
        self.reconcile_queue = reconcile_queue
        self.id_factory = id_factory

    def ingest(self, submission: PostSubmission) -> str:
        """Persist a submission across all stores and return the new post id."""
        post = Post(
            id=self.id_factory(),
            user=submission.user,
            message=submission.message,
            location=Location(lat=submission.lat, lon=submission.lon),
        )
        has_image = submission.image is not None
        self._track(post.id, self.outbox.create, post, has_image=has_image)
        logger.info("Received one post request %s: %s", post.id, post.message)

        try:
            if has_image:
                self._store_image(post, submission)
            self._write_index(post)
            self._write_columns(post)
        except ImageStoreError:
            raise
        except IngestError:
            self._enqueue(post.id)
            raise
        return post.id

    def resume(self, record: IngestionRecord) -> bool:
        """
        Finish the writes an earlier ingestion left undone.

        Returns True when the record is complete afterwards. A record that
        needed an image which never landed cannot be recovered and is marked
        failed.
        """
        if record.has_image and not record.image_stored:
            self._track(
                record.post_id,
                self.outbox.mark_failed,
                record.post_id,
                "image was never stored; nothing to resume",
            )
            logger.warning("[%s] Abandoned ingestion without image", record.post_id)
            return False

        post = record.post()
        if not record.indexed:
            self._write_index(post)
        if not record.columns_written:
            self._write_columns(post)
        logger.info("[%s] Ingestion reconciled", record.post_id)
        return True

    def _track(self, post_id: str, update: Callable, *args, **kwargs) -> None:
        """Apply an outbox update, raising `OutboxError` if the outbox is down."""
        try:
            update(*args, **kwargs)
        except Exception as exc:
            logger.exception("[%s] Outbox update failed: %s", post_id, exc)
            raise OutboxError(post_id) from exc

    def _note_failure(self, post_id: str, update: Callable, reason: str) -> None:
        # The store error is what the caller sees; an outbox error here is only logged.
        try:
            update(post_id, reason)
        except Exception:
            logger.exception("[%s] Could not record failure: %s", post_id, reason)

    def _enqueue(self, post_id: str) -> None:
        try:
            self.reconcile_queue.enqueue(post_id)
        except Exception:
            logger.exception("[%s] Enqueue failed; left for the outbox sweep", post_id)

    def _store_image(self, post: Post, submission: PostSubmission) -> None:
        try:
            post.url = self.object_store.put(
                post.id, submission.image, submission.content_type
            )
        except Exception as exc:
            logger.exception("[%s] Object store write failed: %s", post.id, exc)
            self._note_failure(post.id, self.outbox.mark_failed, f"object_store: {exc}")
            raise ImageStoreError(post.id) from exc
        self._track(
            post.id, self.outbox.mark_step, post.id, STEP_IMAGE_STORED, post=post
        )

    def _write_index(self, post: Post) -> None:
        try:
            self.geo_index.put(post.id, post)
        except Exception as exc:
            logger.exception("[%s] Geo index write failed: %s", post.id, exc)
            self._note_failure(post.id, self.outbox.record_error, f"geo_index: {exc}")
            raise GeoIndexWriteError(post.id) from exc
        self._track(post.id, self.outbox.mark_step, post.id, STEP_INDEXED)

    def _write_columns(self, post: Post) -> None:
        try:
            self.column_store.put_row(post.id, post_columns(post), cell_timestamp())
        except Exception as exc:
            logger.exception("[%s] Column store write failed: %s", post.id, exc)
            self._note_failure(
                post.id, self.outbox.record_error, f"column_store: {exc}"
            )
            raise ColumnStoreWriteError(post.id) from exc
        self._track(post.id, self.outbox.mark_step, post.id, STEP_COLUMNS_WRITTEN)
