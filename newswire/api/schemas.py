"""API request/response schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from newswire.schemas import ArticleRecord


# -- Organizations --

class OrganizationCreateRequest(BaseModel):
    name: str
    url: str = ""


# -- Articles --

class ArticleCreateRequest(BaseModel):
    link: str
    organization_id: Optional[str] = None
    headline: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    publication_date: Optional[datetime] = None


class SimilarTextRequest(BaseModel):
    text: str = ""


class SimilarResponse(BaseModel):
    has_embedding: bool = True
    articles: List[ArticleRecord] = Field(default_factory=list)


class CountResponse(BaseModel):
    count: int


class MissingEmbeddingsResponse(BaseModel):
    missing_embedding: int


class DeletedResponse(BaseModel):
    deleted: int


# -- Feeds --

class FeedPreviewRequest(BaseModel):
    link: str
