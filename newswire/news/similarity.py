"""
Nearest-neighbour lookup over stored article embeddings.

PostgreSQL orders by pgvector's L2 distance (`<->`) in the database. Other
dialects load candidate vectors and rank them with numpy, which is only meant
for development-sized tables.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..database import ArticleModel, OrganizationModel
from ..schemas import ArticleRecord

logger = logging.getLogger(__name__)


def to_record(article: ArticleModel, distance: Optional[float] = None) -> ArticleRecord:
    record = ArticleRecord.model_validate(article)
    if distance is not None:
        record.distance = float(distance)
    return record


def _apply_filters(stmt, exclude_id: Optional[int], organization: Optional[str]):
    stmt = stmt.where(ArticleModel.embedding.is_not(None))
    if exclude_id is not None:
        stmt = stmt.where(ArticleModel.id != exclude_id)
    if organization and organization.strip():
        stmt = stmt.join(OrganizationModel, ArticleModel.organization_id == OrganizationModel.id).where(
            func.lower(OrganizationModel.name) == organization.strip().lower()
        )
    return stmt


def nearest_articles(
    session: Session,
    vector: Sequence[float],
    limit: int = 10,
    exclude_id: Optional[int] = None,
    organization: Optional[str] = None,
) -> List[ArticleRecord]:
    """Closest articles to `vector`, ascending L2 distance.

    Articles without an embedding and `exclude_id` are never returned;
    `organization` filters by case-insensitive organization name.
    """
    if session.get_bind().dialect.name == "postgresql":
        return _nearest_pgvector(session, vector, limit, exclude_id, organization)
    return _nearest_in_memory(session, vector, limit, exclude_id, organization)


def _nearest_pgvector(session, vector, limit, exclude_id, organization) -> List[ArticleRecord]:
    distance = ArticleModel.embedding.l2_distance(list(vector)).label("distance")
    stmt = (
        select(ArticleModel, distance)
        .options(selectinload(ArticleModel.organization))
        .order_by(distance, ArticleModel.id)
        .limit(limit)
    )
    stmt = _apply_filters(stmt, exclude_id, organization)
    return [to_record(article, dist) for article, dist in session.execute(stmt).all()]


def _nearest_in_memory(session, vector, limit, exclude_id, organization) -> List[ArticleRecord]:
    query = np.asarray(vector, dtype=np.float32)
    stmt = _apply_filters(select(ArticleModel.id, ArticleModel.embedding), exclude_id, organization)

    ranked = []
    for article_id, embedding in session.execute(stmt).all():
        candidate = np.asarray(embedding, dtype=np.float32)
        if candidate.shape != query.shape:
            logger.debug(f"Skipping article {article_id}: embedding has {candidate.size} dimensions")
            continue
        ranked.append((float(np.linalg.norm(candidate - query)), article_id))

    ranked.sort()
    top = ranked[:limit]
    if not top:
        return []

    articles = session.execute(
        select(ArticleModel)
        .options(selectinload(ArticleModel.organization))
        .where(ArticleModel.id.in_([article_id for _, article_id in top]))
    ).scalars().all()
    by_id = {a.id: a for a in articles}
    return [to_record(by_id[article_id], dist) for dist, article_id in top if article_id in by_id]
