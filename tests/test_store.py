"""
Tests for versioned event collections and atomic change sets.
"""

import pytest

from timeline_engine.contracts import ErrorCode
from timeline_engine.store import ChangeSet, EventCollection

from tests.fixtures import family_events, make_event


@pytest.fixture
def collection():
    return EventCollection(events=family_events())


class TestEventCollection:

    def test_lookup(self, collection):
        assert len(collection) == 5
        assert "a1" in collection
        assert "missing" not in collection
        assert collection.get("c1").participant_ids == ("carol",)
        assert collection.get("missing") is None

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            EventCollection(events=(make_event("x"), make_event("x")))

    def test_content_hash_follows_ids(self, collection):
        same = EventCollection(events=family_events(), version=7)
        assert collection.content_hash == same.content_hash
        assert EventCollection().content_hash != collection.content_hash


class TestApply:

    def test_replace_bumps_version(self, collection):
        updated = make_event("a1", title="Renamed")
        change = ChangeSet.replacing([collection.get("a1")], [updated])
        result = collection.apply(change)

        assert result.is_success
        snapshot = result.value
        assert snapshot.version == 1
        assert snapshot.get("a1").title == "Renamed"
        assert len(snapshot) == 5
        assert collection.get("a1").title is None

    def test_remove_and_add(self, collection):
        change = ChangeSet(removed_ids=("a1", "b1"), added_events=(make_event("ab"),))
        snapshot = collection.apply(change).unwrap()
        assert [e.id for e in snapshot] == ["shared_ab", "shared_abc", "c1", "ab"]

    def test_unknown_removal_fails_whole_change(self, collection):
        change = ChangeSet(removed_ids=("a1", "ghost"), added_events=(make_event("new"),))
        result = collection.apply(change)

        assert result.is_failure
        assert result.error.code is ErrorCode.EVENT_NOT_FOUND
        assert result.error.context_value("event_ids") == "ghost"
        assert "a1" in collection and collection.version == 0

    def test_id_collision(self, collection):
        result = collection.apply(ChangeSet(added_events=(make_event("c1"),)))
        assert result.error.code is ErrorCode.ID_COLLISION

    def test_duplicate_additions(self, collection):
        change = ChangeSet(added_events=(make_event("n"), make_event("n")))
        assert collection.apply(change).error.code is ErrorCode.ID_COLLISION

    def test_empty_change_set(self, collection):
        change = ChangeSet()
        assert change.is_empty
        assert collection.apply(change).value.version == 1

    def test_change_from_older_version_rejected(self, collection):
        newer = collection.apply(ChangeSet(removed_ids=("c1",))).unwrap()
        stale = ChangeSet.replacing(
            [collection.get("a1")], [make_event("a1", title="Stale")], base_version=0
        )
        result = newer.apply(stale)

        assert result.error.code is ErrorCode.VERSION_CONFLICT
        assert result.error.context_value("version") == "1"
        assert newer.get("a1").title is None

    def test_change_on_its_base_version_commits(self, collection):
        change = ChangeSet(removed_ids=("c1",), base_version=0)
        assert collection.apply(change).value.version == 1
