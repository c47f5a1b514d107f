"""FastAPI dependency injection -- Depends() patterns using app.state from lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from newswire.config import Settings
from newswire.database import Database
from newswire.news.articles import ArticleService
from newswire.news.embedding_job import EmbeddingBackfillJob
from newswire.news.ingestion import FeedIngestionJob


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_article_service(request: Request) -> ArticleService:
    return request.app.state.article_service


def get_ingestion_job(request: Request) -> FeedIngestionJob:
    return request.app.state.ingestion_job


def get_backfill_job(request: Request) -> EmbeddingBackfillJob:
    return request.app.state.backfill_job


# Type aliases for cleaner route signatures
DB = Annotated[Database, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Articles = Annotated[ArticleService, Depends(get_article_service)]
Ingestion = Annotated[FeedIngestionJob, Depends(get_ingestion_job)]
Backfill = Annotated[EmbeddingBackfillJob, Depends(get_backfill_job)]
