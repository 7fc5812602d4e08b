"""
Change subscriptions over Supabase Realtime (postgres_changes).

A ChangeSubscriptionManager belongs to exactly one screen instance and holds
at most one channel per table. Handlers are called synchronously from the
realtime listener, in the order the backing store committed the changes.
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from supabase import AsyncClient

logger = logging.getLogger(__name__)


class ChangeOperation(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    operation: ChangeOperation
    table: str
    row: Dict[str, Any] = field(default_factory=dict)
    old_row: Dict[str, Any] = field(default_factory=dict)

    @property
    def row_id(self) -> Optional[str]:
        value = self.row.get("id") or self.old_row.get("id")
        return str(value) if value is not None else None


ChangeHandler = Callable[[ChangeEvent], Any]


@dataclass
class ChangeHandlers:
    on_insert: Optional[ChangeHandler] = None
    on_update: Optional[ChangeHandler] = None
    on_delete: Optional[ChangeHandler] = None

    def for_operation(self, operation: ChangeOperation) -> Optional[ChangeHandler]:
        return {
            ChangeOperation.INSERT: self.on_insert,
            ChangeOperation.UPDATE: self.on_update,
            ChangeOperation.DELETE: self.on_delete,
        }[operation]


def parse_change_payload(payload: Any, table: str) -> Optional[ChangeEvent]:
    """Turn a realtime postgres_changes payload into a ChangeEvent.

    Accepts both the wire shape ({"data": {"type", "record", "old_record"}})
    and the flattened one ({"eventType", "new", "old"}).
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data", payload)
    if not isinstance(data, dict):
        return None
    raw_type = data.get("type") or data.get("eventType")
    try:
        operation = ChangeOperation(str(raw_type).upper())
    except ValueError:
        return None
    row = data.get("record") or data.get("new") or {}
    old_row = data.get("old_record") or data.get("old") or {}
    if not isinstance(row, dict) or not isinstance(old_row, dict):
        return None
    event = ChangeEvent(operation=operation, table=data.get("table") or table, row=row, old_row=old_row)
    if event.row_id is None:
        return None
    return event


class ChangeSubscriptionManager:
    def __init__(self, client: AsyncClient, owner: str = "screen", schema: str = "public"):
        self._client = client
        self._owner = owner
        self._schema = schema
        # table -> channel; None while the channel is still being joined
        self._channels: Dict[str, Any] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_channels(self) -> int:
        return len(self._channels)

    def is_subscribed(self, table: str) -> bool:
        return table in self._channels

    async def subscribe(self, table: str, handlers: ChangeHandlers) -> Callable[[], Awaitable[None]]:
        """Open the table's channel unless this manager already has one."""
        if table in self._channels:
            logger.debug(f"{self._owner}: already subscribed to {table}")
            return partial(self.unsubscribe, table)

        self._channels[table] = None
        channel_name = f"{self._owner}-{table}-{uuid.uuid4().hex[:8]}"
        channel = self._client.channel(channel_name)
        channel.on_postgres_changes(
            "*",
            callback=partial(self._dispatch, table, handlers),
            table=table,
            schema=self._schema,
        )
        try:
            await channel.subscribe()
        except Exception:
            self._channels.pop(table, None)
            logger.error(f"{self._owner}: failed to open channel {channel_name}")
            raise

        if table not in self._channels:
            # unsubscribed while joining
            await self._client.remove_channel(channel)
        else:
            self._channels[table] = channel
            logger.info(f"{self._owner}: subscribed to {table} via {channel_name}")
        return partial(self.unsubscribe, table)

    async def unsubscribe(self, table: str) -> None:
        channel = self._channels.pop(table, None)
        if channel is not None:
            await self._client.remove_channel(channel)
            logger.info(f"{self._owner}: closed channel for {table}")

    async def close(self) -> None:
        for table in list(self._channels):
            await self.unsubscribe(table)
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _dispatch(self, table: str, handlers: ChangeHandlers, payload: Any) -> None:
        if table not in self._channels:
            return
        event = parse_change_payload(payload, table)
        if event is None:
            logger.warning(f"{self._owner}: dropping malformed {table} change payload")
            return
        handler = handlers.for_operation(event.operation)
        if handler is None:
            return
        try:
            result = handler(event)
        except Exception:
            logger.exception(f"{self._owner}: {event.operation.value} handler for {table} failed")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
