"""
Tests for the Optimistic Patch Engine.

Tests cover:
- Snapshot / apply / commit
- Rollback to the prior value or to absence
- Concurrent mutations on one key
- The optimistic() context manager
"""

import asyncio

import pytest

from planner.sync.entity_store import EntityStore, note_key, tasks_key_for_date
from planner.sync.optimistic import OptimisticPatchEngine


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def engine(store):
    return OptimisticPatchEngine(store)


KEY = tasks_key_for_date("2026-01-14")


class TestProtocol:
    def test_apply_then_commit_keeps_patch(self, store, engine):
        store.set(KEY, ["a"])

        snapshot = engine.begin_mutation(KEY)
        engine.apply(snapshot, lambda tasks: [*tasks, "b"])
        assert store.get_data(KEY) == ["a", "b"]
        assert engine.is_pending(KEY)

        engine.commit(snapshot)
        assert store.get_data(KEY) == ["a", "b"]
        assert snapshot.resolved
        assert not engine.is_pending(KEY)
        assert not store.is_held(KEY)

    def test_rollback_restores_snapshot(self, store, engine):
        store.set(KEY, ["a"])

        snapshot = engine.begin_mutation(KEY)
        engine.apply(snapshot, lambda tasks: [])
        engine.rollback(snapshot)

        assert store.get_data(KEY) == ["a"]

    def test_snapshot_is_isolated_from_in_place_edits(self, store, engine):
        store.set(KEY, [{"content": "a"}])

        snapshot = engine.begin_mutation(KEY)
        store.get_data(KEY)[0]["content"] = "mutated"
        engine.rollback(snapshot)

        assert store.get_data(KEY) == [{"content": "a"}]

    def test_rollback_of_loaded_none_restores_none(self, store, engine):
        key = note_key("2026-W03")
        store.set(key, None)

        snapshot = engine.begin_mutation(key)
        engine.apply(snapshot, lambda old: {"content": "provisional"})
        engine.rollback(snapshot)

        assert key in store
        assert store.get_data(key) is None

    def test_never_loaded_key_is_not_patched(self, store, engine):
        key = note_key("2026-W03")

        snapshot = engine.begin_mutation(key)
        engine.apply(snapshot, lambda old: {"content": "provisional"})
        assert key not in store

        engine.rollback(snapshot)
        assert key not in store

    def test_apply_after_settle_is_rejected(self, store, engine):
        store.set(KEY, [])
        snapshot = engine.begin_mutation(KEY)
        engine.commit(snapshot)
        with pytest.raises(RuntimeError):
            engine.apply(snapshot, lambda tasks: tasks)

    def test_resolve_is_idempotent(self, store, engine):
        store.set(KEY, ["a"])
        snapshot = engine.begin_mutation(KEY)
        engine.commit(snapshot)
        engine.commit(snapshot)
        engine.rollback(snapshot)
        assert store.get_data(KEY) == ["a"]

    async def test_begin_cancels_in_flight_fetch(self, store, engine):
        started = asyncio.Event()

        async def slow_loader():
            started.set()
            await asyncio.sleep(0.05)
            return ["server"]

        store.set(KEY, ["cached"])
        store.invalidate(KEY)
        fetching = asyncio.create_task(store.fetch(KEY, slow_loader))
        await started.wait()

        snapshot = engine.begin_mutation(KEY)
        assert not store.is_fetching(KEY)
        engine.apply(snapshot, lambda tasks: [*tasks, "optimistic"])
        await fetching
        assert store.get_data(KEY) == ["cached", "optimistic"]
        engine.commit(snapshot)

class TestOrdering:
    def test_second_mutation_applies_while_first_pending(self, store, engine):
        store.set(KEY, ["a"])

        first = engine.begin_mutation(KEY)
        engine.apply(first, lambda tasks: [*tasks, "first"])
        second = engine.begin_mutation(KEY)
        engine.apply(second, lambda tasks: [*tasks, "second"])

        assert store.get_data(KEY) == ["a", "first", "second"]
        engine.commit(first)
        engine.commit(second)
        assert store.get_data(KEY) == ["a", "first", "second"]
        assert not store.is_held(KEY)

    def test_rollback_keeps_other_pending_patches(self, store, engine):
        store.set(KEY, ["a"])

        first = engine.begin_mutation(KEY)
        engine.apply(first, lambda tasks: [*tasks, "first"])
        second = engine.begin_mutation(KEY)
        engine.apply(second, lambda tasks: [*tasks, "second"])

        engine.rollback(first)
        assert store.get_data(KEY) == ["a", "second"]
        assert engine.is_pending(KEY)
        assert store.is_held(KEY)

        engine.commit(second)
        assert store.get_data(KEY) == ["a", "second"]
        assert not engine.is_pending(KEY)

    def test_rollback_after_other_commit_keeps_committed_patch(self, store, engine):
        store.set(KEY, ["a"])

        first = engine.begin_mutation(KEY)
        engine.apply(first, lambda tasks: [*tasks, "first"])
        second = engine.begin_mutation(KEY)
        engine.apply(second, lambda tasks: [*tasks, "second"])

        engine.commit(first)
        engine.rollback(second)
        assert store.get_data(KEY) == ["a", "first"]

    def test_commit_reply_patches_are_replayed_under_pending_ones(self, store, engine):
        store.set(KEY, [{"id": 1, "done": False}])

        create = engine.begin_mutation(KEY)
        engine.apply(create, lambda rows: [*rows, {"id": -1, "done": False}])
        toggle = engine.begin_mutation(KEY)
        engine.apply(
            toggle,
            lambda rows: [{**r, "done": True} if r["id"] in (-1, 2) else r for r in rows],
        )

        engine.commit(
            create,
            lambda rows: [{"id": 2, "done": False} if r["id"] == -1 else r for r in rows],
        )
        assert store.get_data(KEY) == [{"id": 1, "done": False}, {"id": 2, "done": True}]

    async def test_invalidation_during_mutation_refetches_on_release(self, store, engine):
        async def loader():
            return ["server"]

        await store.fetch(KEY, loader)
        snapshot = engine.begin_mutation(KEY)
        engine.apply(snapshot, lambda tasks: [*tasks, "b"])
        store.invalidate(KEY)
        assert not store.is_fetching(KEY)

        engine.commit(snapshot)
        assert store.is_fetching(KEY)
        await store.wait_idle()
        assert store.get_data(KEY) == ["server"]

    def test_different_keys_are_independent(self, store, engine):
        other = note_key("2026-W03")
        store.set(KEY, [])
        store.set(other, None)

        first = engine.begin_mutation(KEY)
        second = engine.begin_mutation(other)
        engine.rollback(second)
        assert engine.is_pending(KEY)
        assert not engine.is_pending(other)
        engine.commit(first)


class TestContextManager:
    async def test_commits_on_success(self, store, engine):
        store.set(KEY, ["a"])
        async with engine.optimistic(KEY, lambda tasks: [*tasks, "b"]) as snapshot:
            assert store.get_data(KEY) == ["a", "b"]
        assert snapshot.resolved
        assert store.get_data(KEY) == ["a", "b"]

    async def test_rolls_back_on_error(self, store, engine):
        store.set(KEY, ["a"])
        with pytest.raises(ValueError):
            async with engine.optimistic(KEY, lambda tasks: [*tasks, "b"]):
                raise ValueError("remote said no")
        assert store.get_data(KEY) == ["a"]
        assert not engine.is_pending(KEY)
