"""
Locally synced copy of one table for one screen instance.

Lifecycle: UNMOUNTED -> FETCHING_INITIAL -> LIVE -> UNMOUNTING -> UNMOUNTED.
The table is used as an async context manager so the channel is released on
every exit path.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError
from supabase import AsyncClient

from app.config import settings
from app.realtime.refresh import CoalescingRefresher
from app.realtime.subscriptions import (
    ChangeEvent,
    ChangeHandlers,
    ChangeOperation,
    ChangeSubscriptionManager,
)

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound=BaseModel)
Notifier = Callable[[str, str], Any]
ChangeListener = Callable[[Optional[ChangeEvent]], Any]


class ScreenState(str, Enum):
    UNMOUNTED = "unmounted"
    FETCHING_INITIAL = "fetching_initial"
    LIVE = "live"
    UNMOUNTING = "unmounting"


@dataclass(frozen=True)
class TableSpec(Generic[RowT]):
    name: str
    model: Type[RowT]
    # (column, descending) pairs, applied in order
    order_by: Tuple[Tuple[str, bool], ...] = ()
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or self.name.replace("_", " ")


class LiveTable(Generic[RowT]):
    def __init__(
        self,
        client: AsyncClient,
        spec: TableSpec[RowT],
        manager: ChangeSubscriptionManager,
        notify: Optional[Notifier] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self.client = client
        self.spec = spec
        self.manager = manager
        self.rows: List[RowT] = []
        self.state = ScreenState.UNMOUNTED
        self._notify = notify
        self._listeners: List[ChangeListener] = []
        self._alive = False
        self._buffer: Optional[List[ChangeEvent]] = None
        delay = settings.refresh_debounce_seconds if debounce_seconds is None else debounce_seconds
        self.refresher = CoalescingRefresher(self.reload, delay=delay, name=f"{spec.name} refresh")

    async def __aenter__(self) -> "LiveTable[RowT]":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.unmount()

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def mount(self) -> None:
        if self.state in (ScreenState.FETCHING_INITIAL, ScreenState.LIVE):
            return
        self._alive = True
        self.state = ScreenState.FETCHING_INITIAL
        self._buffer = []
        try:
            await self.manager.subscribe(
                self.spec.name,
                ChangeHandlers(on_insert=self.apply, on_update=self.apply, on_delete=self.apply),
            )
        except Exception as e:
            logger.error(f"Could not subscribe to {self.spec.name}: {e}")
            self._emit_notification("error", f"Live updates for {self.spec.display_name} are unavailable")
        await self.reload()
        if not self._alive:
            return
        self.state = ScreenState.LIVE
        self._replay_buffer()
        self._changed(None)

    async def unmount(self) -> None:
        if self.state == ScreenState.UNMOUNTED:
            return
        self.state = ScreenState.UNMOUNTING
        self._alive = False
        self._buffer = None
        try:
            await self.refresher.close()
        finally:
            await self.manager.unsubscribe(self.spec.name)
            self.state = ScreenState.UNMOUNTED
            logger.debug(f"{self.spec.name} live table unmounted")

    async def fetch_all(self) -> List[RowT]:
        query = self.client.table(self.spec.name).select("*")
        for column, desc in self.spec.order_by:
            query = query.order(column, desc=desc)
        result = await query.execute()
        return [self.spec.model(**row) for row in (result.data or [])]

    async def reload(self) -> bool:
        """Full read of the table. Late responses after unmount are dropped.

        Events arriving while the read is in flight are buffered and replayed
        onto the resulting rows, or onto the last known good rows on failure.
        """
        initial = self.state == ScreenState.FETCHING_INITIAL
        # mount() owns the buffer during the initial fetch
        owns_buffer = self._buffer is None
        if owns_buffer:
            self._buffer = []
        try:
            rows = await self.fetch_all()
        except Exception as e:
            logger.error(f"Error fetching {self.spec.name}: {e}")
            if not self._alive:
                return False
            if initial:
                self.rows = []
            if owns_buffer and self._replay_buffer():
                self._changed(None)
            self._emit_notification("error", f"Failed to fetch {self.spec.display_name}")
            return False
        if not self._alive:
            logger.debug(f"Dropping late {self.spec.name} response after unmount")
            return False
        self.rows = rows
        if owns_buffer:
            self._replay_buffer()
        if not initial:
            self._changed(None)
        return True

    def request_refresh(self) -> None:
        self.refresher.trigger()

    async def retry(self) -> None:
        await self.refresher.run_now()

    def apply(self, event: ChangeEvent) -> None:
        if not self._alive:
            return
        if self._buffer is not None:
            self._buffer.append(event)
            return
        if self._apply_now(event):
            self._changed(event)

    def project(self, predicate: Optional[Callable[[RowT], bool]] = None) -> List[RowT]:
        if predicate is None:
            return list(self.rows)
        return [row for row in self.rows if predicate(row)]

    def get(self, row_id: str) -> Optional[RowT]:
        for row in self.rows:
            if str(row.id) == row_id:
                return row
        return None

    def _index_of(self, row_id: str) -> int:
        for index, row in enumerate(self.rows):
            if str(row.id) == row_id:
                return index
        return -1

    def _apply_now(self, event: ChangeEvent) -> bool:
        """Merge one event into rows; returns True when rows changed."""
        row_id = event.row_id
        index = self._index_of(row_id)
        if event.operation == ChangeOperation.DELETE:
            if index < 0:
                return False
            del self.rows[index]
            return True

        try:
            row = self.spec.model(**event.row)
        except ValidationError as e:
            logger.warning(f"Dropping invalid {self.spec.name} row {row_id}: {e}")
            return False

        if event.operation == ChangeOperation.INSERT:
            if index >= 0:
                return False
            self.rows.insert(0, row)
            return True

        if index >= 0:
            self.rows[index] = row
        else:
            self.rows.insert(0, row)
        return True

    def _replay_buffer(self) -> bool:
        buffered, self._buffer = self._buffer or [], None
        changed = False
        for event in buffered:
            changed = self._apply_now(event) or changed
        return changed

    def _changed(self, event: Optional[ChangeEvent]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"{self.spec.name} change listener failed")

    def _emit_notification(self, level: str, message: str) -> None:
        if self._notify is not None:
            self._notify(level, message)
