"""
Reconcile worker: finishes ingestions that stopped part way.

Post ids arrive on the reconcile queue when a request hit a store failure.
When the queue is empty the worker sweeps the outbox for PENDING or PARTIAL
records older than `min_age_seconds`, which also picks up ingestions whose
process died before it could enqueue anything.

    python -m around.worker --once
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Optional

from around.dependencies import (
    get_column_store,
    get_geo_index,
    get_object_store,
    get_outbox_client,
    get_queue_client,
)
from around.errors import IngestError
from around.ingest import PostIngestor
from around.outbox import INCOMPLETE_STATES, IngestionRecord, OutboxClient
from around.queue import ReconcileQueue

logger = logging.getLogger(__name__)

DEFAULT_MIN_AGE_SECONDS = 60.0


def build_ingestor(outbox: OutboxClient, queue: ReconcileQueue) -> PostIngestor:
    return PostIngestor(
        object_store=get_object_store(),
        geo_index=get_geo_index(),
        column_store=get_column_store(),
        outbox=outbox,
        reconcile_queue=queue,
    )


def reconcile_record(record: IngestionRecord, ingestor: PostIngestor) -> bool:
    """Resume one record. Store failures are logged and left for the next sweep."""
    try:
        return ingestor.resume(record)
    except IngestError as exc:
        logger.warning("[%s] Reconcile failed at %s", exc.post_id, exc.stage)
        return False


def process_next(
    *,
    outbox: Optional[OutboxClient] = None,
    queue: Optional[ReconcileQueue] = None,
    ingestor: Optional[PostIngestor] = None,
    block: bool = True,
    timeout: Optional[int] = None,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
) -> bool:
    """
    Reconcile one ingestion from the queue (or outbox fallback). Returns True if one was attempted.
    """
    outbox = outbox or get_outbox_client()
    queue = queue or get_queue_client()
    ingestor = ingestor or build_ingestor(outbox, queue)

    post_id = queue.dequeue(block=block, timeout=timeout)
    record: Optional[IngestionRecord] = None

    if post_id:
        record = outbox.get(post_id)
        if not record:
            logger.warning("Received post_id %s from queue but no outbox record found", post_id)
            return False
        if record.state not in INCOMPLETE_STATES:
            logger.info("[%s] Already %s, skipping", post_id, record.state.value)
            return False
    else:
        pending = outbox.list_incomplete(limit=1, older_than_seconds=min_age_seconds)
        if not pending:
            return False
        record = pending[0]

    reconcile_record(record, ingestor)
    return True


def sweep(
    *,
    outbox: Optional[OutboxClient] = None,
    ingestor: Optional[PostIngestor] = None,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
    limit: int = 100,
) -> int:
    """Reconcile up to `limit` stale incomplete records; returns how many completed."""
    outbox = outbox or get_outbox_client()
    ingestor = ingestor or build_ingestor(outbox, get_queue_client())
    completed = 0
    for record in outbox.list_incomplete(limit=limit, older_than_seconds=min_age_seconds):
        if reconcile_record(record, ingestor):
            completed += 1
    return completed


def run_loop(
    poll_interval_seconds: float = 2.0,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
) -> None:
    """
    Polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    outbox = get_outbox_client()
    queue = get_queue_client()
    ingestor = build_ingestor(outbox, queue)
    while True:
        try:
            processed = process_next(
                outbox=outbox,
                queue=queue,
                ingestor=ingestor,
                block=True,
                timeout=max(1, int(poll_interval_seconds)),
                min_age_seconds=min_age_seconds,
            )
        except Exception:
            logger.exception("Reconcile pass failed")
            processed = False
        if not processed:
            time.sleep(poll_interval_seconds)


def main() -> int:
    parser = argparse.ArgumentParser(description="Around ingestion reconcile worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Sweep stale incomplete ingestions once and exit",
    )
    parser.add_argument(
        "--poll-interval-seconds",
        type=float,
        default=2.0,
        help="Seconds to block on the queue between passes",
    )
    parser.add_argument(
        "--min-age-seconds",
        type=float,
        default=DEFAULT_MIN_AGE_SECONDS,
        help="Only sweep outbox records untouched for this long",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if args.once:
        completed = sweep(min_age_seconds=args.min_age_seconds)
        logger.info("Sweep complete, reconciled %d ingestions", completed)
        return 0

    run_loop(
        poll_interval_seconds=args.poll_interval_seconds,
        min_age_seconds=args.min_age_seconds,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
