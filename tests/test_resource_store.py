"""
Tests for ResourceStore and StoreRegistry.
"""

import threading

import pytest

from contract_runtime.core.errors import ConflictError, GuardFailedError
from contract_runtime.core.query import parse_query
from contract_runtime.core.store import StoreRegistry


@pytest.fixture
def store(registry):
    return registry.open("persons")


def _insert_many(store, count):
    """Insert records with strictly increasing createdAt values."""
    records = []
    for i in range(1, count + 1):
        record = {"id": f"p{i}", "n": i, "createdAt": f"2024-01-01T00:00:{i:02d}.000Z"}
        records.append(store.insert_seed(record))
    return records


class TestInsertAndFind:
    """insert / find_by_id"""

    def test_insert_then_find_returns_same_record(self, store):
        record = {"name": "John", "tags": ["a", "b"], "address": {"city": "Springfield"}}

        created = store.insert(record)
        found = store.find_by_id(created["id"])

        assert found == created
        assert {k: v for k, v in found.items() if k not in ("id", "createdAt", "updatedAt")} == record
        assert found["createdAt"] == found["updatedAt"]
        assert found["createdAt"].endswith("Z")

    def test_insert_ignores_client_server_fields(self, store):
        created = store.insert({"id": "mine", "createdAt": "1999-01-01T00:00:00Z", "name": "x"})

        assert created["id"] != "mine"
        assert created["createdAt"] != "1999-01-01T00:00:00Z"

    def test_insert_does_not_mutate_argument(self, store):
        record = {"name": "x"}
        store.insert(record)
        assert record == {"name": "x"}

    def test_find_unknown_id(self, store):
        assert store.find_by_id("missing") is None

    def test_insert_seed_keeps_id_and_replaces(self, store):
        store.insert_seed({"id": "s1", "name": "first"}, created_at="2024-01-01T00:00:00.000Z")
        store.insert_seed({"id": "s1", "name": "second"}, created_at="2024-01-02T00:00:00.000Z")

        found = store.find_by_id("s1")
        assert found["name"] == "second"
        assert found["createdAt"] == "2024-01-02T00:00:00.000Z"
        assert store.count() == 1

    def test_insert_seed_requires_id(self, store):
        with pytest.raises(ValueError):
            store.insert_seed({"name": "no id"})


class TestUpdate:
    """update / update_with"""

    def test_shallow_merge(self, store):
        created = store.insert({"a": 1, "b": {"x": 1, "y": 2}, "c": "keep"})

        updated = store.update(created["id"], {"a": 2, "b": {"x": 9}})

        assert updated["a"] == 2
        assert updated["b"] == {"x": 9}
        assert updated["c"] == "keep"
        assert store.find_by_id(created["id"]) == updated

    def test_id_and_created_at_are_immutable(self, store):
        created = store.insert({"a": 1})

        updated = store.update(created["id"], {"id": "other", "createdAt": "2000-01-01T00:00:00Z"})

        assert updated["id"] == created["id"]
        assert updated["createdAt"] == created["createdAt"]
        assert store.find_by_id("other") is None

    def test_updated_at_refreshed(self, store):
        created = store.insert_seed({"id": "u1", "updatedAt": "2024-01-01T00:00:00.000Z"})
        updated = store.update("u1", {"a": 1})
        assert updated["updatedAt"] > created["updatedAt"]

    def test_update_unknown_id(self, store):
        assert store.update("missing", {"a": 1}) is None

    def test_update_with_abort_writes_nothing(self, store):
        created = store.insert({"status": "pending"})

        def mutator(record):
            record["status"] = "in_progress"
            raise GuardFailedError("someGuard", "nope")

        with pytest.raises(GuardFailedError):
            store.update_with(created["id"], mutator)
        assert store.find_by_id(created["id"])["status"] == "pending"

    def test_update_with_serializes_concurrent_calls(self, store):
        created = store.insert({"counter": 0})
        errors = []

        def bump():
            try:
                for _ in range(20):
                    store.update_with(created["id"], lambda r: {**r, "counter": r["counter"] + 1})
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert store.find_by_id(created["id"])["counter"] == 80


class TestRemove:
    """remove / clear"""

    def test_remove_then_find_is_none_and_second_remove_false(self, store):
        created = store.insert({"a": 1})

        assert store.remove(created["id"]) is True
        assert store.find_by_id(created["id"]) is None
        assert store.remove(created["id"]) is False

    def test_clear(self, store):
        _insert_many(store, 3)
        assert store.clear() == 3
        assert store.count() == 0


class TestFindAll:
    """Ordering, filtering and paging."""

    def test_orders_by_created_at_descending(self, store):
        _insert_many(store, 5)
        result = store.find_all()
        assert [r["n"] for r in result.items] == [5, 4, 3, 2, 1]
        assert result.total == 5

    def test_limit_offset_page(self, store):
        _insert_many(store, 10)

        result = store.find_all(limit=3, offset=3)

        # 4th-6th newest records
        assert [r["n"] for r in result.items] == [7, 6, 5]
        assert result.total == 10

    def test_ties_broken_by_insertion_order(self, store):
        for name in ("first", "second", "third"):
            store.insert_seed({"id": name, "createdAt": "2024-01-01T00:00:00.000Z"})

        assert [r["id"] for r in store.find_all().items] == ["third", "second", "first"]

    def test_filtered_page_and_total(self, store):
        _insert_many(store, 10)

        result = store.find_all(parse_query("n:>=4"), limit=2, offset=1)

        assert [r["n"] for r in result.items] == [9, 8]
        assert result.total == 7

    def test_offset_past_end(self, store):
        _insert_many(store, 2)
        result = store.find_all(limit=5, offset=10)
        assert result.items == []
        assert result.total == 2

    def test_find_first(self, store):
        store.insert_seed({"id": "a", "kind": "x", "createdAt": "2024-01-01T00:00:00.000Z"})
        store.insert_seed({"id": "b", "kind": "x", "createdAt": "2024-01-02T00:00:00.000Z"})

        assert store.find_first({"kind": "x"})["id"] == "b"
        assert store.find_first({"id": "a"})["id"] == "a"
        assert store.find_first({"kind": "y"}) is None


class TestStoreRegistry:
    """Store lifecycle."""

    def test_open_is_lazy_and_cached(self, registry):
        assert registry.names == []
        tasks = registry.open("tasks")
        assert registry.open("tasks") is tasks
        assert registry.names == ["tasks"]

    def test_stores_are_isolated(self, registry):
        registry.open("a").insert_seed({"id": "1"})
        assert registry.open("b").find_by_id("1") is None

    def test_clear_all_and_health(self, registry):
        registry.open("a").insert({"x": 1})
        registry.open("b")

        health = registry.health_check()
        assert health["status"] == "healthy"
        assert health["stores"]["a"] == {"status": "healthy", "records": 1}

        assert registry.clear_all() == {"a": 1, "b": 0}

    def test_file_backed_stores_persist(self, tmp_path):
        first = StoreRegistry(tmp_path / "data")
        created = first.open("tasks").insert({"title": "persist me"})
        first.close_all()

        second = StoreRegistry(tmp_path / "data")
        try:
            assert second.open("tasks").find_by_id(created["id"])["title"] == "persist me"
            assert (tmp_path / "data" / "tasks.db").is_file()
        finally:
            second.close_all()

    def test_duplicate_id_conflict(self, registry):
        store = registry.open("things")
        created = store.insert({"a": 1})
        with pytest.raises(ConflictError):
            store._add(dict(created))
