"""
Tests for the SQLite local store.

Tests cover:
- Record CRUD and filtering
- Sentence history ordering and sync flags
"""

from tapboard.models import RecordKind, SyncableRecord, SyncState


def _record(key, kind=RecordKind.FAVOURITE.value, owner="user-1", state=SyncState.LOCAL_UNSYNCED):
    return SyncableRecord(key=key, payload={"label": key}, owner_id=owner, kind=kind, state=state)


class TestRecords:
    """Test record storage."""

    def test_put_and_get(self, local_store):
        assert local_store.put(_record("go"))

        record = local_store.get("user-1", "favourite", "go")

        assert record.payload == {"label": "go"}
        assert record.state is SyncState.LOCAL_UNSYNCED

    def test_put_replaces(self, local_store):
        local_store.put(_record("go"))
        local_store.put(_record("go", state=SyncState.SYNCED))
        assert local_store.get("user-1", "favourite", "go").synced
        assert len(local_store.list_records("user-1")) == 1

    def test_missing_record(self, local_store):
        assert local_store.get("user-1", "favourite", "nope") is None

    def test_delete(self, local_store):
        local_store.put(_record("go"))
        assert local_store.delete("user-1", "favourite", "go")
        assert not local_store.delete("user-1", "favourite", "go")

    def test_owners_are_isolated(self, local_store):
        local_store.put(_record("go", owner="user-1"))
        local_store.put(_record("eat", owner="user-2"))
        assert [r.key for r in local_store.list_records("user-1")] == ["go"]

    def test_filters(self, local_store):
        local_store.put(_record("go"))
        local_store.put(_record("eat", state=SyncState.SYNCED))
        local_store.put(_record("Family", kind="category"))

        assert [r.key for r in local_store.list_records("user-1", kind="favourite")] == ["go", "eat"]
        assert [r.key for r in local_store.list_records("user-1", state=SyncState.SYNCED)] == ["eat"]
        assert [r.key for r in local_store.list_unsynced("user-1")] == ["go", "Family"]

    def test_count_by_state(self, local_store):
        local_store.put(_record("go"))
        local_store.put(_record("eat", state=SyncState.SYNCED))
        local_store.put(_record("drink", state=SyncState.SYNCED))
        assert local_store.count_by_state("user-1") == {"local_unsynced": 1, "synced": 2}
        assert local_store.count_by_state("nobody") == {}


class TestHistory:
    """Test sentence history."""

    def test_recent_history_oldest_first(self, local_store):
        for i in range(20):
            local_store.add_history("user-1", f"sentence {i}", 1000 + i)

        entries = local_store.recent_history("user-1")

        assert len(entries) == 15
        assert entries[0].sentence == "sentence 5"
        assert entries[-1].sentence == "sentence 19"
        assert [e.timestamp for e in entries] == sorted(e.timestamp for e in entries)

    def test_explicit_limit(self, local_store):
        for i in range(5):
            local_store.add_history("user-1", f"s{i}", i)
        assert [e.sentence for e in local_store.recent_history("user-1", limit=2)] == ["s3", "s4"]

    def test_mark_synced(self, local_store):
        first = local_store.add_history("user-1", "hello", 1)
        local_store.add_history("user-1", "bye", 2)

        assert local_store.mark_history_synced([first]) == 1

        assert [e.sentence for e in local_store.unsynced_history("user-1")] == ["bye"]
        assert local_store.mark_history_synced([]) == 0

    def test_entry_document(self, local_store):
        local_store.add_history("user-1", "hello", 42)
        entry = local_store.recent_history("user-1")[0]
        assert entry.to_dict() == {"sentence": "hello", "timestamp": 42}
        assert entry.synced is False
