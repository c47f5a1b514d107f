"""Feeds router -- preview a feed without storing it."""

from typing import List

from fastapi import APIRouter

from newswire.api.dependencies import Ingestion
from newswire.api.schemas import FeedPreviewRequest
from newswire.schemas import FeedItem

router = APIRouter()


@router.post("/rss", response_model=List[FeedItem])
async def preview_feed(body: FeedPreviewRequest, job: Ingestion):
    """Fetch and parse one feed URL, returning its items in document order."""
    return await job.preview_feed(body.link)
