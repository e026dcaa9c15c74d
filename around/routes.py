"""
HTTP routes for posting and searching.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import PlainTextResponse

from around.auth import get_current_username
from around.dependencies import get_ingestor, get_searcher
from around.errors import (
    IngestError,
    InvalidQueryError,
    InvalidSubmissionError,
    SearchError,
)
from around.ingest import PostIngestor, build_submission
from around.schemas import HealthResponse, PostResponse
from around.search import PostSearcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/post", response_class=PlainTextResponse)
def create_post(
    message: str = Form(""),
    lat: Optional[str] = Form(None),
    lon: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    username: str = Depends(get_current_username),
    ingestor: PostIngestor = Depends(get_ingestor),
):
    """
    Store a post and its optional image. Responds with a plain confirmation
    and the new id in `X-Post-Id`.
    """
    # Browsers send an empty, unnamed part for an untouched file input.
    if image is not None and not image.filename:
        image = None
    try:
        submission = build_submission(
            username,
            message,
            lat,
            lon,
            image=image.file if image is not None else None,
            content_type=image.content_type if image is not None else None,
        )
    except InvalidSubmissionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        post_id = ingestor.ingest(submission)
    except IngestError as exc:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to save post {exc.post_id} to {exc.stage}",
        ) from exc

    return PlainTextResponse(
        f"Post received: {submission.message}\n",
        headers={"X-Post-Id": post_id},
    )


@router.get("/search", response_model=list[PostResponse])
def search_posts(
    lat: Optional[str] = Query(None),
    lon: Optional[str] = Query(None),
    range_km: Optional[str] = Query(None, alias="range"),
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    username: str = Depends(get_current_username),
    searcher: PostSearcher = Depends(get_searcher),
):
    try:
        posts = searcher.search(lat, lon, range_km, offset=offset, limit=limit)
    except InvalidQueryError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SearchError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return [PostResponse.from_post(post) for post in posts]


@router.get("/healthz", response_model=HealthResponse)
def healthz():
    return HealthResponse(status="ok")
