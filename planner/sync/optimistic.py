"""
Optimistic Patch Engine.

Brackets every cache write made on behalf of a mutation:

    snapshot = engine.begin_mutation(key)
    engine.apply(snapshot, transform)
    ... remote call ...
    engine.commit(snapshot)   # or engine.rollback(snapshot)

``begin_mutation`` cancels any in-flight fetch for the key and holds it, so
no refetch can overwrite a provisional value while mutations are pending.

Several mutations may be pending on one key at once; each one's patch is
visible as soon as it is applied. The engine keeps the key's value from
before the first pending mutation (the base) plus the transforms of every
pending mutation, in the order they were applied. Committing folds a
mutation's transforms into the base; rolling back drops them and rebuilds
the cached value from the base and the transforms still pending, so one
failure never wipes out another mutation's patch.
"""

import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List

from .entity_store import EntityStore, QueryKey

logger = logging.getLogger(__name__)

Transform = Callable[[Any], Any]


@dataclass
class Snapshot:
    """One mutation's patches to one key."""

    key: QueryKey
    transforms: List[Transform] = field(default_factory=list)
    resolved: bool = False


@dataclass
class _KeyState:
    loaded: bool
    base: Any
    pending: List[Snapshot] = field(default_factory=list)


class OptimisticPatchEngine:
    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._keys: Dict[QueryKey, _KeyState] = {}

    @property
    def store(self) -> EntityStore:
        return self._store

    def is_pending(self, key: QueryKey) -> bool:
        return key in self._keys

    def begin_mutation(self, key: QueryKey) -> Snapshot:
        self._store.cancel_in_flight(key)
        self._store.hold(key)

        state = self._keys.get(key)
        if state is None:
            entry = self._store.get(key)
            state = _KeyState(
                loaded=entry is not None,
                base=copy.deepcopy(entry.data) if entry is not None else None,
            )
            self._keys[key] = state

        snapshot = Snapshot(key=key)
        state.pending.append(snapshot)
        return snapshot

    def apply(self, snapshot: Snapshot, transform: Transform) -> None:
        """Replace the cached value with ``transform(current)``.

        Keys that were never loaded are left alone: there is nothing on screen
        to patch, and the post-mutation invalidation loads them. A loaded key
        whose data is ``None`` (entity does not exist yet) is passed to the
        transform as ``None`` so it can build a provisional value.
        """
        if snapshot.resolved:
            raise RuntimeError(f"apply() for {snapshot.key} after the mutation settled")
        snapshot.transforms.append(transform)
        if self._keys[snapshot.key].loaded:
            self._store.update(snapshot.key, transform)

    def commit(self, snapshot: Snapshot, *transforms: Transform) -> None:
        """Keep the mutation's patches, plus *transforms* derived from the server reply."""
        if snapshot.resolved:
            return
        state = self._keys[snapshot.key]
        snapshot.transforms.extend(transforms)
        if state.loaded:
            for transform in snapshot.transforms:
                state.base = transform(state.base)
        self._finish(snapshot, state)

    def rollback(self, snapshot: Snapshot) -> None:
        if snapshot.resolved:
            return
        state = self._keys[snapshot.key]
        logger.info(f"Rolled back optimistic patch for {snapshot.key}")
        self._finish(snapshot, state)

    def _finish(self, snapshot: Snapshot, state: _KeyState) -> None:
        snapshot.resolved = True
        state.pending.remove(snapshot)
        self._rebuild(snapshot.key, state)
        if not state.pending:
            del self._keys[snapshot.key]
        self._store.release(snapshot.key)

    def _rebuild(self, key: QueryKey, state: _KeyState) -> None:
        if not state.loaded:
            return
        value = copy.deepcopy(state.base)
        for pending in state.pending:
            for transform in pending.transforms:
                value = transform(value)
        self._store.update(key, lambda _: value)

    @asynccontextmanager
    async def optimistic(self, key: QueryKey, transform: Transform) -> AsyncIterator[Snapshot]:
        """Patch *key*, commit if the block completes and roll back if it raises."""
        snapshot = self.begin_mutation(key)
        try:
            self.apply(snapshot, transform)
            yield snapshot
        except BaseException:
            self.rollback(snapshot)
            raise
        else:
            self.commit(snapshot)
