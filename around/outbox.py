"""
Ingestion outbox: one record per ingestion with per-store acknowledgments.

The three store writes are not atomic. The outbox makes the gap observable:
a record starts PENDING, becomes PARTIAL once any store has acknowledged, and
COMPLETE once every required store has. An ingestion whose image upload
failed is FAILED, since the bytes never reached durable storage.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Protocol

from sqlalchemy import JSON, Boolean, Column, Float, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from around.models import Location, Post


class IngestionState(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


INCOMPLETE_STATES = (IngestionState.PENDING, IngestionState.PARTIAL)

STEP_IMAGE_STORED = "image_stored"
STEP_INDEXED = "indexed"
STEP_COLUMNS_WRITTEN = "columns_written"
STEPS = (STEP_IMAGE_STORED, STEP_INDEXED, STEP_COLUMNS_WRITTEN)


def post_payload(post: Post) -> dict:
    return {"id": post.id, **post.as_document()}


def post_from_payload(payload: dict) -> Post:
    return Post.from_document(payload["id"], payload)


@dataclass
class IngestionRecord:
    post_id: str
    payload: dict
    has_image: bool
    image_stored: bool = False
    indexed: bool = False
    columns_written: bool = False
    state: IngestionState = IngestionState.PENDING
    last_error: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def post(self) -> Post:
        return post_from_payload(self.payload)

    def derive_state(self) -> IngestionState:
        if self.state == IngestionState.FAILED:
            return self.state
        required = [self.indexed, self.columns_written]
        if self.has_image:
            required.append(self.image_stored)
        if all(required):
            return IngestionState.COMPLETE
        if any(required):
            return IngestionState.PARTIAL
        return IngestionState.PENDING

    def as_dict(self) -> dict:
        return {
            "post_id": self.post_id,
            "has_image": self.has_image,
            "image_stored": self.image_stored,
            "indexed": self.indexed,
            "columns_written": self.columns_written,
            "state": self.state.value,
            "last_error": self.last_error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class OutboxClient(Protocol):
    """Interface for outbox persistence."""

    def create(self, post: Post, has_image: bool) -> IngestionRecord:
        ...

    def get(self, post_id: str) -> Optional[IngestionRecord]:
        ...

    def mark_step(
        self, post_id: str, step: str, *, post: Optional[Post] = None
    ) -> Optional[IngestionRecord]:
        ...

    def record_error(self, post_id: str, error: str) -> None:
        ...

    def mark_failed(self, post_id: str, error: str) -> None:
        ...

    def list_incomplete(
        self, limit: int = 100, older_than_seconds: float = 0
    ) -> list[IngestionRecord]:
        ...


def _check_step(step: str) -> None:
    if step not in STEPS:
        raise ValueError(f"Unknown ingestion step: {step}")


class InMemoryOutboxClient:
    """Simple in-memory outbox for development and tests."""

    def __init__(self):
        self.records: Dict[str, IngestionRecord] = {}

    def create(self, post: Post, has_image: bool) -> IngestionRecord:
        record = IngestionRecord(
            post_id=post.id, payload=post_payload(post), has_image=has_image
        )
        self.records[post.id] = record
        return record

    def get(self, post_id: str) -> Optional[IngestionRecord]:
        return self.records.get(post_id)

    def mark_step(
        self, post_id: str, step: str, *, post: Optional[Post] = None
    ) -> Optional[IngestionRecord]:
        _check_step(step)
        record = self.records.get(post_id)
        if not record:
            return None
        setattr(record, step, True)
        if post is not None:
            record.payload = post_payload(post)
        record.state = record.derive_state()
        record.updated_at = time.time()
        return record

    def record_error(self, post_id: str, error: str) -> None:
        record = self.records.get(post_id)
        if record:
            record.last_error = error
            record.updated_at = time.time()

    def mark_failed(self, post_id: str, error: str) -> None:
        record = self.records.get(post_id)
        if record:
            record.state = IngestionState.FAILED
            record.last_error = error
            record.updated_at = time.time()

    def list_incomplete(
        self, limit: int = 100, older_than_seconds: float = 0
    ) -> list[IngestionRecord]:
        cutoff = time.time() - older_than_seconds
        items = [
            record
            for record in self.records.values()
            if record.state in INCOMPLETE_STATES and record.updated_at <= cutoff
        ]
        items.sort(key=lambda record: record.created_at)
        return items[:limit]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.records.clear()


class SqlOutboxClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlOutboxClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "IngestionRow") -> IngestionRecord:
        return IngestionRecord(
            post_id=row.post_id,
            payload=dict(row.payload),
            has_image=row.has_image,
            image_stored=row.image_stored,
            indexed=row.indexed,
            columns_written=row.columns_written,
            state=IngestionState(row.state),
            last_error=row.last_error,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create(self, post: Post, has_image: bool) -> IngestionRecord:
        now = time.time()
        with self.Session() as session:
            row = IngestionRow(
                post_id=post.id,
                payload=post_payload(post),
                has_image=has_image,
                image_stored=False,
                indexed=False,
                columns_written=False,
                state=IngestionState.PENDING.value,
                last_error=None,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def get(self, post_id: str) -> Optional[IngestionRecord]:
        with self.Session() as session:
            row = session.get(IngestionRow, post_id)
            if not row:
                return None
            return self._to_record(row)

    def mark_step(
        self, post_id: str, step: str, *, post: Optional[Post] = None
    ) -> Optional[IngestionRecord]:
        _check_step(step)
        with self.Session() as session:
            row = session.get(IngestionRow, post_id)
            if not row:
                return None
            setattr(row, step, True)
            if post is not None:
                row.payload = post_payload(post)
            row.state = self._to_record(row).derive_state().value
            row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def record_error(self, post_id: str, error: str) -> None:
        with self.Session() as session:
            row = session.get(IngestionRow, post_id)
            if not row:
                return
            row.last_error = error
            row.updated_at = time.time()
            session.commit()

    def mark_failed(self, post_id: str, error: str) -> None:
        with self.Session() as session:
            row = session.get(IngestionRow, post_id)
            if not row:
                return
            row.state = IngestionState.FAILED.value
            row.last_error = error
            row.updated_at = time.time()
            session.commit()

    def list_incomplete(
        self, limit: int = 100, older_than_seconds: float = 0
    ) -> list[IngestionRecord]:
        cutoff = time.time() - older_than_seconds
        with self.Session() as session:
            stmt = (
                select(IngestionRow)
                .where(
                    IngestionRow.state.in_([s.value for s in INCOMPLETE_STATES]),
                    IngestionRow.updated_at <= cutoff,
                )
                .order_by(IngestionRow.created_at.asc())
                .limit(limit)
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row) for row in rows]


Base = declarative_base()


class IngestionRow(Base):
    __tablename__ = "ingestions"

    post_id = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)
    has_image = Column(Boolean, nullable=False, default=False)
    image_stored = Column(Boolean, nullable=False, default=False)
    indexed = Column(Boolean, nullable=False, default=False)
    columns_written = Column(Boolean, nullable=False, default=False)
    state = Column(String, nullable=False, index=True)
    last_error = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
