"""
Wiring for a signed-in planner session.

One ``PlannerClient`` owns the shared entity store, optimistic engine,
executor and coalescer, and hands out week views that all share them.
"""

from typing import Optional

import httpx

from ..core.config import Settings, get_settings
from ..utils.week import DateLike
from .debounce import DebounceCoalescer
from .entity_store import EntityStore
from .executor import MutationExecutor
from .optimistic import OptimisticPatchEngine
from .planner_store import PlannerStore
from .remote import HttpRemoteApi, RemoteApi
from .summary_store import SummaryStore


class PlannerClient:
    def __init__(self, remote: RemoteApi, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.remote = remote
        self.store = EntityStore.from_settings(self.settings)
        self.patches = OptimisticPatchEngine(self.store)
        self.executor = MutationExecutor(remote, self.store, self.patches)
        self.coalescer = DebounceCoalescer(default_delay=self.settings.text_debounce_seconds)

    @classmethod
    def connect(
        cls,
        token: str,
        base_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PlannerClient":
        settings = settings or get_settings()
        remote = HttpRemoteApi(
            base_url or settings.api_base_url,
            token,
            timeout=settings.remote_timeout,
            transport=transport,
        )
        return cls(remote, settings)

    def planner(self, reference_date: Optional[DateLike] = None) -> PlannerStore:
        return PlannerStore(
            self.executor, self.store, self.remote, self.coalescer, reference_date, self.settings
        )

    def summary(self, reference_date: Optional[DateLike] = None) -> SummaryStore:
        return SummaryStore(
            self.executor, self.store, self.remote, self.coalescer, reference_date, self.settings
        )

    async def settle(self) -> None:
        """Wait for pending debounced writes and refetches to finish."""
        await self.coalescer.wait_idle()
        await self.store.wait_idle()

    async def aclose(self) -> None:
        await self.coalescer.flush_all()
        await self.store.wait_idle()
        close = getattr(self.remote, "aclose", None)
        if close is not None:
            await close()
