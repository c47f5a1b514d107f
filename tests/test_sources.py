"""
Tests for feed list → organization resolution.
"""

from sqlalchemy import func, select

from newswire.database import OrganizationModel
from newswire.news.sources import (
    get_or_create_organization, read_feed_list, resolve_organization_definition,
)


class TestResolveDefinition:
    """Keyword match, host fallback, unresolvable."""

    def test_known_keyword(self):
        definition = resolve_organization_definition("corpus/economist.txt", ["https://feeds.example.com/x"])
        assert definition.name == "The Economist"
        assert definition.url == "https://www.economist.com"

    def test_keyword_is_case_insensitive(self):
        definition = resolve_organization_definition("TheVerge-Tech.txt", [])
        assert definition.name == "The Verge"

    def test_host_fallback(self):
        definition = resolve_organization_definition(
            "arstechnica.txt", ["https://feeds.arstechnica.com/arstechnica/index"]
        )
        assert definition.name == "feeds.arstechnica.com"
        assert definition.url == "https://feeds.arstechnica.com"

    def test_unresolvable(self):
        assert resolve_organization_definition("misc.txt", []) is None
        assert resolve_organization_definition("misc.txt", ["not a url"]) is None


class TestGetOrCreate:
    """Organizations are matched by exact name."""

    def test_created_once(self, db):
        urls = ["https://www.zeit.de/index"]
        with db.get_session() as session:
            first = get_or_create_organization(session, "zeit.txt", urls)
        with db.get_session() as session:
            second = get_or_create_organization(session, "zeit.txt", urls)
            total = session.execute(select(func.count(OrganizationModel.id))).scalar_one()

        assert first.id == second.id
        assert first.name == "DIE ZEIT"
        assert total == 1

    def test_unresolvable_returns_none(self, db):
        with db.get_session() as session:
            assert get_or_create_organization(session, "misc.txt", []) is None


def test_read_feed_list_skips_blank_lines(tmp_path):
    path = tmp_path / "dw.txt"
    path.write_text("  https://rss.dw.com/a \n\n   \nhttps://rss.dw.com/b\n", encoding="utf-8")

    assert read_feed_list(path) == ["https://rss.dw.com/a", "https://rss.dw.com/b"]
