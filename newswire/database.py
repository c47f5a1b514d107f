"""
Relational store: organizations and their ingested articles.

Tables:
  - organizations: feed owners, matched by display name
  - articles: one row per distinct link, embedding attached once by the backfill job

Embeddings use pgvector on PostgreSQL and fall back to a JSON column on
other dialects (SQLite in development and tests).
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, create_engine,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings
from .errors import PersistenceError

logger = logging.getLogger(__name__)

Base = declarative_base()


# ── Models ───────────────────────────────────────────────────────────────────

class OrganizationModel(Base):
    """Owner of one or more feeds."""
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(300), nullable=False, index=True)
    url = Column(String(500), nullable=False)

    articles = relationship("ArticleModel", back_populates="organization")


class ArticleModel(Base):
    """Ingested feed item. `id` grows with insertion order and breaks date ties."""
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    link = Column(String(2048), nullable=False, unique=True)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    headline = Column(Text)
    description = Column(Text)
    summary = Column(Text)
    content = Column(Text)
    publication_date = Column(DateTime(timezone=True), index=True)

    # No fixed dimension: a provider returning an unexpected size is still stored.
    embedding = Column(Vector().with_variant(JSON(none_as_null=True), "sqlite"), nullable=True)
    # Set when the article has no text to embed, so the backfill stops reselecting it.
    embedding_skipped = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    organization = relationship("OrganizationModel", back_populates="articles")


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager: engine plus session factory."""

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings()
        url = database_url or settings.database_url

        engine_kwargs = {"echo": False}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        if self.dialect == "postgresql":
            from sqlalchemy import text
            with self.engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Session:
        """Session scoped to one transaction; store failures surface as PersistenceError."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(str(e)) from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()


# ── Singleton ────────────────────────────────────────────────────────────────

_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
