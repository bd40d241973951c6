# FILE: backend/casedesk/services/sync_service.py
# CASEDESK - LIVE CASE SYNC
# 1. PAINT: The cached snapshot is joined immediately so callers never start from an empty view.
# 2. CHANNEL: Two producer tasks (cases, hearings) push full snapshots onto one asyncio.Queue.
# 3. JOIN: The consumer replaces the matching raw set, writes it to the cache and recomputes the join.
# 4. FAILURE: A subscription error lands in the context error slot; the last good view stays.

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..core.context import DataContext
from ..models.case import Case
from .aggregation import join_cases
from .record_store import CASES, HEARINGS, RecordStore

logger = structlog.get_logger(__name__)

Records = List[Dict[str, Any]]
Listener = Callable[[List[Case]], Any]

@dataclass(frozen=True)
class Snapshot:
    kind: str
    records: Records = field(default_factory=list)
    error: Optional[str] = None

async def load_cases(store: RecordStore, context: DataContext) -> List[Case]:
    """One-shot read of the user's view. Falls back to the cached snapshot when the store is unreachable."""
    if not context.is_authenticated:
        return []
    try:
        raw_cases = await store.find(CASES, {"user_id": context.user_id})
        raw_hearings = await store.find(HEARINGS, {"user_id": context.user_id})
        cases = join_cases(raw_cases, raw_hearings)
    except Exception as e:
        message = str(e) or "Failed to load cases."
        context.set_error(message)
        logger.warning("Store read failed, serving cached snapshot", user_id=context.user_id, error=message)
        return _cached_cases(context)

    context.save_cases(raw_cases)
    context.save_hearings(raw_hearings)
    return cases

def _cached_cases(context: DataContext) -> List[Case]:
    try:
        return join_cases(*context.load_snapshot())
    except Exception as e:
        logger.error("Cached snapshot unusable", user_id=context.user_id, error=str(e))
        return []

class CaseSync:
    def __init__(self, store: RecordStore, context: DataContext):
        self.store = store
        self.context = context
        self.raw_cases, self.raw_hearings = context.load_snapshot()
        self.cases: List[Case] = join_cases(self.raw_cases, self.raw_hearings)
        self.is_loading = context.is_authenticated and not context.has_snapshot()
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self._listeners: List[Listener] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, snapshot: Snapshot) -> List[Case]:
        if snapshot.error is not None:
            self.context.set_error(snapshot.error)
            self.is_loading = False
            return self.cases

        if snapshot.kind == CASES:
            raw_cases, raw_hearings = snapshot.records, self.raw_hearings
        elif snapshot.kind == HEARINGS:
            raw_cases, raw_hearings = self.raw_cases, snapshot.records
        else:
            raise ValueError(f"Unknown snapshot kind: {snapshot.kind}")

        # Join first: a snapshot that cannot be joined leaves state and cache untouched.
        cases = join_cases(raw_cases, raw_hearings)
        self.raw_cases, self.raw_hearings, self.cases = raw_cases, raw_hearings, cases
        if snapshot.kind == CASES:
            self.context.save_cases(raw_cases)
            self.is_loading = False
        else:
            self.context.save_hearings(raw_hearings)
        return self.cases

    async def _notify(self, cases: List[Case]) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(cases)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("Snapshot listener failed", user_id=self.context.user_id, error=str(e))

    async def _produce(self, kind: str) -> None:
        try:
            async for records in self.store.snapshots(kind, {"user_id": self.context.user_id}):
                await self._queue.put(Snapshot(kind, records))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = str(e) or f"Failed to load {kind}."
            logger.error("Live subscription failed", collection=kind, user_id=self.context.user_id, error=message)
            await self._queue.put(Snapshot(kind, error=message))

    async def _consume(self) -> None:
        while True:
            snapshot = await self._queue.get()
            try:
                cases = self.apply(snapshot)
            except Exception as e:
                message = str(e) or f"Failed to apply {snapshot.kind} snapshot."
                logger.error("Snapshot rejected, keeping last view", collection=snapshot.kind, user_id=self.context.user_id, error=message)
                self.context.set_error(message)
                cases = self.cases
            await self._notify(cases)

    async def start(self) -> None:
        if self.is_running:
            return
        if not self.context.is_authenticated:
            self.raw_cases, self.raw_hearings, self.cases = [], [], []
            self.is_loading = False
            return

        self.context.clear_error()
        self._queue = asyncio.Queue()
        logger.info("Starting live case sync", user_id=self.context.user_id)
        self._tasks = [
            asyncio.create_task(self._produce(CASES)),
            asyncio.create_task(self._produce(HEARINGS)),
            asyncio.create_task(self._consume()),
        ]

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._listeners.clear()
        if tasks:
            logger.info("Stopped live case sync", user_id=self.context.user_id)

    async def __aenter__(self) -> "CaseSync":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
