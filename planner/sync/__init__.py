"""Client-side optimistic sync core."""

from .client import PlannerClient
from .debounce import DebounceCoalescer, PendingWrite
from .drag import DragSession, DragState, drop_target_id, parse_drop_target
from .entity_store import (
    CacheEntry,
    EntityStore,
    QueryKey,
    note_key,
    settings_key,
    summary_key,
    tasks_key,
    tasks_key_for_date,
)
from .executor import MutationExecutor, MutationResult, MutationStatus, Operation
from .optimistic import OptimisticPatchEngine, Snapshot
from .planner_store import PlannerStore
from .remote import HttpRemoteApi, RemoteApi
from .summary_store import SummaryStore

__all__ = [
    "CacheEntry",
    "DebounceCoalescer",
    "DragSession",
    "DragState",
    "EntityStore",
    "HttpRemoteApi",
    "MutationExecutor",
    "MutationResult",
    "MutationStatus",
    "OptimisticPatchEngine",
    "Operation",
    "PendingWrite",
    "PlannerClient",
    "PlannerStore",
    "QueryKey",
    "RemoteApi",
    "Snapshot",
    "SummaryStore",
    "drop_target_id",
    "note_key",
    "parse_drop_target",
    "settings_key",
    "summary_key",
    "tasks_key",
    "tasks_key_for_date",
]
