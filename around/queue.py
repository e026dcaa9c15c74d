"""
Reconcile queue of post ids.

A post id is queued each time one of its store writes fails, and a retried
ingestion can fail again before the worker gets to it. The queue keeps each
id at most once while it waits, so the worker resumes a post once per pass
instead of once per failure. An id becomes queueable again as soon as it is
taken off.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class ReconcileQueue(Protocol):
    def enqueue(self, post_id: str) -> bool:
        """Queue `post_id` unless it is already waiting; True if it was added."""
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...


@dataclass
class InMemoryReconcileQueue:
    items: list[str] = field(default_factory=list)

    def enqueue(self, post_id: str) -> bool:
        if post_id in self.items:
            return False
        self.items.append(post_id)
        return True

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisReconcileQueue:
    """
    A Redis list of post ids plus a set of the ids currently in the list.

    `enqueue` only pushes when SADD reports a new member; `dequeue` removes
    the id from the set after popping it.
    """

    url: str
    queue_key: str = "around:reconcile"

    def __post_init__(self):
        self.pending_key = f"{self.queue_key}:pending"
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, post_id: str) -> bool:
        if not self.client.sadd(self.pending_key, post_id):
            logger.debug("[%s] Already waiting for reconcile", post_id)
            return False
        self.client.rpush(self.queue_key, post_id)
        return True

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                popped = self.client.blpop(self.queue_key, timeout=timeout or 0)
                raw = popped[1] if popped else None
            else:
                raw = self.client.lpop(self.queue_key)
            if raw is None:
                return None
            self.client.srem(self.pending_key, raw)
        except redis_exceptions.ConnectionError:
            # The outbox sweep covers this round; the next call gets a fresh client.
            logger.warning("Redis connection lost, reconnecting")
            self.client = redis.Redis.from_url(self.url)
            return None
        return raw.decode("utf-8")
