"""Articles router -- cached reads, similarity lookups and article mutations.

Cacheable reads (search, newest, similar) report X-Cache: HIT | MISS.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query, Response

from newswire.api.dependencies import Articles
from newswire.api.schemas import (
    ArticleCreateRequest, CountResponse, DeletedResponse, MissingEmbeddingsResponse,
    SimilarResponse, SimilarTextRequest,
)
from newswire.schemas import ArticleRecord, FeedItem

logger = logging.getLogger(__name__)

router = APIRouter()


def _cache_header(response: Response, hit: bool) -> None:
    response.headers["X-Cache"] = "HIT" if hit else "MISS"


# -- Writes --

@router.post("", response_model=ArticleRecord, status_code=201)
async def create_article(body: ArticleCreateRequest, service: Articles):
    """Store one article. A link that already exists returns 409."""
    item = FeedItem(
        link=body.link,
        headline=body.headline,
        description=body.description,
        summary=body.summary,
        publication_date=body.publication_date,
    )
    return service.create_article(item, organization_id=body.organization_id, content=body.content)


@router.delete("", response_model=DeletedResponse)
async def delete_all_articles(service: Articles):
    return DeletedResponse(deleted=service.delete_all_articles())


@router.delete("/{article_id}", status_code=204)
async def delete_article(article_id: int, service: Articles):
    service.delete_article(article_id)
    return Response(status_code=204)


# -- Counters --

@router.get("/count", response_model=CountResponse)
async def count_articles(service: Articles):
    return CountResponse(count=service.count_articles())


@router.get("/embeddings/missing", response_model=MissingEmbeddingsResponse)
async def missing_embeddings(service: Articles):
    return MissingEmbeddingsResponse(missing_embedding=service.count_missing_embeddings())


# -- Cached reads --

@router.get("/search", response_model=List[ArticleRecord])
async def search_articles(
    response: Response,
    service: Articles,
    query: str = Query(..., description="Substring matched against headline, summary, description and content"),
    organization_slug: Optional[str] = Query(None),
):
    result = service.search_articles(query, organization_slug)
    _cache_header(response, result.cache_hit)
    return result.value


@router.get("/newest", response_model=List[ArticleRecord])
async def newest_articles(response: Response, service: Articles, organization: Optional[str] = Query(None)):
    result = service.newest_articles(organization)
    _cache_header(response, result.cache_hit)
    return result.value


@router.get("/similar", response_model=SimilarResponse)
async def similar_articles(response: Response, service: Articles, link: str = Query(...)):
    """Nearest articles to a stored article. has_embedding=false when it has no vector yet."""
    result = service.similar_to_article(link)
    _cache_header(response, result.cache_hit)
    return SimilarResponse(has_embedding=result.value.has_embedding, articles=result.value.articles)


@router.post("/similar/text", response_model=List[ArticleRecord])
async def similar_to_text(body: SimilarTextRequest, service: Articles, organization: Optional[str] = Query(None)):
    return await service.similar_to_text(body.text, organization)


# -- Uncached reads --

@router.get("/organization/{slug}", response_model=List[ArticleRecord])
async def articles_by_organization(slug: str, service: Articles):
    return service.articles_by_organization(slug)
