"""
Feed source resolution: which organization owns a feed list.

A feed list is a text file with one feed URL per line. Its owner is found by
keyword match on the file name (KNOWN_ORGANIZATIONS), falling back to the
host of the first feed URL, and then fetched or created by exact name.
"""

import logging
from pathlib import Path
from typing import List, NamedTuple, Optional
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import KNOWN_ORGANIZATIONS
from ..database import OrganizationModel

logger = logging.getLogger(__name__)


class OrganizationDefinition(NamedTuple):
    name: str
    url: str


def read_feed_list(path: Path) -> List[str]:
    """Feed URLs from a feed list file, trimmed, blank lines dropped."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


def resolve_organization_definition(
    source_id: str, feed_urls: List[str]
) -> Optional[OrganizationDefinition]:
    """Map a feed list identifier (file name or tag) to an organization name and URL.

    Returns None when the identifier is unknown and no feed URL is absolute.
    """
    key = Path(source_id).stem.lower()
    for keyword, org in KNOWN_ORGANIZATIONS.items():
        if keyword in key:
            return OrganizationDefinition(org["name"], org["url"])

    if feed_urls:
        parsed = urlparse(feed_urls[0])
        if parsed.scheme and parsed.hostname:
            return OrganizationDefinition(parsed.hostname, f"{parsed.scheme}://{parsed.hostname}")

    return None


def get_or_create_organization(
    session: Session, source_id: str, feed_urls: List[str]
) -> Optional[OrganizationModel]:
    """Find the owning organization by exact name, creating it on first sight."""
    definition = resolve_organization_definition(source_id, feed_urls)
    if definition is None:
        return None

    existing = session.execute(
        select(OrganizationModel).where(OrganizationModel.name == definition.name).limit(1)
    ).scalar_one_or_none()
    if existing is not None:
        return existing

    organization = OrganizationModel(name=definition.name, url=definition.url)
    session.add(organization)
    session.flush()
    logger.info(f"Created organization '{organization.name}' ({organization.url}) for {source_id}")
    return organization
