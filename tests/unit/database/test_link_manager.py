"""
Tests for LinkManager: undirected edges with per-side descriptions.
"""
import pytest
from sqlalchemy import func, select

from muninn.core.exceptions import DatabaseError, ValidationError
from muninn.database.models import EntryLink


@pytest.fixture
def pair(entry_manager):
    older = entry_manager.create(entry_id="1700000000000-older", transcript="older")
    newer = entry_manager.create(entry_id="1700000000001-newer", transcript="newer")
    return older, newer


def edge_count(session):
    return session.scalar(select(func.count()).select_from(EntryLink))


class TestLinkEntries:
    def test_link_is_visible_from_both_sides(self, link_manager, pair):
        older, newer = pair

        link_manager.link_entries(newer.id, older.id, "follows up on", "followed by")

        assert [(e.id, r) for e, r in link_manager.get_linked_entries(newer.id)] == [
            (older.id, "follows up on")
        ]
        assert [(e.id, r) for e, r in link_manager.get_linked_entries(older.id)] == [
            (newer.id, "followed by")
        ]

    def test_reverse_falls_back_to_description(self, link_manager, pair):
        older, newer = pair

        link_manager.link_entries(newer.id, older.id, "same trip")

        assert link_manager.get_linked_entries(older.id)[0][1] == "same trip"

    def test_relinking_either_direction_updates_one_edge(self, link_manager, pair, db_session):
        older, newer = pair

        link_manager.link_entries(newer.id, older.id, "first")
        link_manager.link_entries(older.id, newer.id, "from the older side")

        assert edge_count(db_session) == 1
        assert link_manager.get_linked_entries(older.id)[0][1] == "from the older side"
        assert link_manager.get_linked_entries(newer.id)[0][1] == "first"

    def test_self_link_rejected(self, link_manager, pair):
        with pytest.raises(ValidationError):
            link_manager.link_entries(pair[0].id, pair[0].id)

    def test_unknown_entry(self, link_manager, pair):
        with pytest.raises(DatabaseError):
            link_manager.link_entries(pair[0].id, "1700000000000-ghost")

    def test_unlink(self, link_manager, pair, db_session):
        older, newer = pair
        link_manager.link_entries(newer.id, older.id, "x")

        assert link_manager.unlink_entries(older.id, newer.id) is True
        assert link_manager.unlink_entries(older.id, newer.id) is False
        assert edge_count(db_session) == 0

    def test_links_cascade_on_delete(self, link_manager, entry_manager, pair, db_session):
        older, newer = pair
        link_manager.link_entries(newer.id, older.id, "x")

        entry_manager.delete(older)

        assert edge_count(db_session) == 0
        assert link_manager.get_linked_entries(newer.id) == []
