"""
RSS / Atom feed parser.

Both formats are handled the same way: every element whose local name is
`item` or `entry` is an item container, wherever it sits in the document and
whatever namespace it carries. Child lookups go by local name too, so
`dc:date`, `atom:link` and plain `link` are all found.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Iterator, Optional
from urllib.parse import urlparse

from dateutil import parser as date_parser

from ..errors import ParseError
from ..schemas import FeedItem

logger = logging.getLogger(__name__)

ITEM_TAGS = ("item", "entry")

# Tried in order; the first value that parses wins.
DATE_FIELDS = ("pubDate", "published", "updated", "date")


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        # Comments and processing instructions
        return ""
    return tag.rsplit("}", 1)[-1]


def _element_text(element: ET.Element) -> str:
    """All text inside the element, including nested markup."""
    return "".join(element.itertext())


def extract_value(item: ET.Element, name: str) -> Optional[str]:
    """Trimmed text of the first child whose local name matches (case-insensitive)."""
    wanted = name.lower()
    for child in item:
        if _local_name(child.tag).lower() == wanted:
            return _element_text(child).strip()
    return None


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def extract_link(item: ET.Element) -> Optional[str]:
    """Resolve the item link: <link> text, then <link href>, then <guid>."""
    link = extract_value(item, "link")

    if not link:
        for child in item:
            if _local_name(child.tag) == "link":
                link = (child.get("href") or "").strip()
                break

    if not link:
        link = extract_value(item, "guid")

    if not link or not _is_absolute_url(link):
        return None
    return link


def parse_publication_date(value: Optional[str]) -> Optional[datetime]:
    """Lenient date parse. Values without a timezone are taken as UTC."""
    if not value or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def extract_publication_date(item: ET.Element) -> Optional[datetime]:
    for field in DATE_FIELDS:
        parsed = parse_publication_date(extract_value(item, field))
        if parsed is not None:
            return parsed
    return None


def parse_item(item: ET.Element) -> Optional[FeedItem]:
    """Normalize one item container. Returns None when no link can be resolved."""
    link = extract_link(item)
    if link is None:
        return None

    return FeedItem(
        link=link,
        headline=extract_value(item, "title"),
        description=extract_value(item, "description"),
        summary=extract_value(item, "summary"),
        publication_date=extract_publication_date(item),
    )


class ParsedFeed:
    """Items of one feed document, in document order.

    The XML is parsed up front so malformed documents fail immediately;
    items are normalized lazily and every iteration starts from the top.
    """

    def __init__(self, root: ET.Element):
        self._root = root

    def __iter__(self) -> Iterator[FeedItem]:
        for element in self._root.iter():
            if _local_name(element.tag) not in ITEM_TAGS:
                continue
            item = parse_item(element)
            if item is None:
                logger.debug("Dropping feed item without a resolvable link")
                continue
            yield item

    def is_empty(self) -> bool:
        return next(iter(self), None) is None


def parse_feed(xml_text: str) -> ParsedFeed:
    """Parse RSS 2.0, RSS 1.0 or Atom text. Raises ParseError on malformed XML."""
    if not xml_text or not xml_text.strip():
        raise ParseError("empty feed document")
    try:
        root = ET.fromstring(xml_text.strip())
    except ET.ParseError as e:
        raise ParseError(f"malformed feed XML: {e}") from e
    return ParsedFeed(root)
