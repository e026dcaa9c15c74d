"""
Dependency wiring for the FastAPI app and the reconcile worker.

Store adapters are process-wide singletons; orchestrators are built per
request around them.
"""

from __future__ import annotations

from fastapi import Depends

from around.column_store import BigtableColumnStore, ColumnStore, InMemoryColumnStore
from around.config import Settings, get_settings
from around.content_filter import ContentFilter
from around.geo_index import ElasticsearchGeoIndex, GeoIndex, InMemoryGeoIndex
from around.ingest import PostIngestor
from around.outbox import InMemoryOutboxClient, OutboxClient, SqlOutboxClient
from around.queue import InMemoryReconcileQueue, ReconcileQueue, RedisReconcileQueue
from around.search import PostSearcher
from around.storage import InMemoryObjectStore, ObjectStore, S3ObjectStore

_geo_index: GeoIndex | None = None
_object_store: ObjectStore | None = None
_column_store: ColumnStore | None = None
_outbox_client: OutboxClient | None = None
_queue_client: ReconcileQueue | None = None


def get_geo_index() -> GeoIndex:
    global _geo_index
    if _geo_index:
        return _geo_index

    settings = get_settings()
    if settings.use_in_memory_backends:
        _geo_index = InMemoryGeoIndex()
    else:
        _geo_index = ElasticsearchGeoIndex(
            settings.es_url,
            settings.es_index,
            request_timeout=settings.es_request_timeout,
        )
    return _geo_index


def get_object_store() -> ObjectStore:
    global _object_store
    if _object_store:
        return _object_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _object_store = InMemoryObjectStore()
    else:
        _object_store = S3ObjectStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url,
        )
    return _object_store


def get_column_store() -> ColumnStore:
    global _column_store
    if _column_store:
        return _column_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.bigtable_instance_id:
        _column_store = InMemoryColumnStore()
    else:
        _column_store = BigtableColumnStore(
            project_id=settings.bigtable_project_id or "",
            instance_id=settings.bigtable_instance_id,
            table_id=settings.bigtable_table_id,
        )
    return _column_store


def get_outbox_client() -> OutboxClient:
    """
    Return a singleton outbox so ingestion state persists across requests.
    """
    global _outbox_client
    if _outbox_client:
        return _outbox_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _outbox_client = InMemoryOutboxClient()
    else:
        _outbox_client = SqlOutboxClient(settings.database_url)
    return _outbox_client


def get_queue_client() -> ReconcileQueue:
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisReconcileQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryReconcileQueue()
    return _queue_client


def get_content_filter() -> ContentFilter:
    return ContentFilter()


def get_ingestor(
    object_store: ObjectStore = Depends(get_object_store),
    geo_index: GeoIndex = Depends(get_geo_index),
    column_store: ColumnStore = Depends(get_column_store),
    outbox: OutboxClient = Depends(get_outbox_client),
    queue: ReconcileQueue = Depends(get_queue_client),
) -> PostIngestor:
    return PostIngestor(
        object_store=object_store,
        geo_index=geo_index,
        column_store=column_store,
        outbox=outbox,
        reconcile_queue=queue,
    )


def get_searcher(
    geo_index: GeoIndex = Depends(get_geo_index),
    content_filter: ContentFilter = Depends(get_content_filter),
    settings: Settings = Depends(get_settings),
) -> PostSearcher:
    return PostSearcher(
        geo_index=geo_index,
        content_filter=content_filter,
        default_radius_km=settings.default_search_radius_km,
        max_page_size=settings.max_page_size,
    )


def reset_clients() -> None:
    """Drop cached adapters so the next call rebuilds them from settings."""
    global _geo_index, _object_store, _column_store, _outbox_client, _queue_client
    _geo_index = None
    _object_store = None
    _column_store = None
    _outbox_client = None
    _queue_client = None
