"""
Live back-office screens.

One screen instance per WebSocket connection. A screen is gated by the
access guard before it mounts and re-checks the guard on every session
event; it owns its ChangeSubscriptionManager and therefore its channels.
Outbound frames go through `outbox`, drained by the WebSocket route.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Type

from supabase import AsyncClient

from app.config import settings
from app.core.exceptions import AppError
from app.core.roles import Role, can_access
from app.core.session import SessionResolver
from app.modules.dashboard.service import DashboardService
from app.modules.menu_items.schemas import MenuItemResponse
from app.modules.orders.schemas import OrderResponse, OrderStatus
from app.modules.users.schemas import ProfileResponse
from app.realtime.live_table import LiveTable, TableSpec
from app.realtime.refresh import CoalescingRefresher
from app.realtime.subscriptions import ChangeEvent, ChangeHandlers, ChangeOperation, ChangeSubscriptionManager

logger = logging.getLogger(__name__)

ORDERS_TABLE = TableSpec(name="orders", model=OrderResponse, order_by=(("created_at", True),))
MENU_ITEMS_TABLE = TableSpec(
    name="menu_items",
    model=MenuItemResponse,
    order_by=(("category", False), ("name", False)),
    label="menu items",
)

ALL = "all"
# Sentinel asking the sender to close the socket after flushing
CLOSE_SOCKET = object()


class LiveScreen:
    name = "screen"
    required_role = Role.ADMIN

    def __init__(self, client: AsyncClient, resolver: SessionResolver, debounce_seconds: Optional[float] = None):
        self.client = client
        self.resolver = resolver
        self.debounce_seconds = settings.refresh_debounce_seconds if debounce_seconds is None else debounce_seconds
        self.manager = ChangeSubscriptionManager(client, owner=f"{self.name}-{uuid.uuid4().hex[:8]}")
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.denied = False
        self._unsubscribe_session = None

    def send(self, frame: Dict[str, Any]) -> None:
        if not self.closed:
            self.outbox.put_nowait(frame)

    def notify(self, level: str, message: str) -> None:
        self.send({"type": "notification", "level": level, "message": message})

    async def open(self) -> bool:
        """Guard, then mount. Returns False when access is denied."""
        profile = await self.resolver.start()
        if not can_access(profile, self.required_role):
            await self.deny()
            return False
        self._unsubscribe_session = self.resolver.subscribe(self._on_session)
        try:
            await self.resolver.watch_profile(self.manager)
        except Exception as e:
            logger.warning(f"{self.name}: profile changes will only be seen on session events: {e}")
        await self.mount()
        return True

    async def deny(self) -> None:
        self.denied = True
        self.send({
            "type": "access_denied",
            "message": "You don't have permission to access this page.",
            "redirect": settings.public_route,
        })
        await self.close()
        self.outbox.put_nowait(CLOSE_SOCKET)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.unmount()
        finally:
            if self._unsubscribe_session is not None:
                self._unsubscribe_session()
                self._unsubscribe_session = None
            await self.manager.close()
            logger.info(f"{self.name} screen closed")

    async def handle_message(self, message: Dict[str, Any]) -> None:
        kind = message.get("type") if isinstance(message, dict) else None
        if kind == "ping":
            self.send({"type": "pong"})
        elif kind == "refresh":
            await self.refresh()
        elif kind == "filter":
            self.set_filter(message.get("value"))
        else:
            self.notify("warning", f"Unknown message type: {kind}")

    async def _on_session(self, profile: Optional[ProfileResponse]) -> None:
        if self.closed:
            return
        if not can_access(profile, self.required_role):
            logger.info(f"{self.name}: access revoked mid-session")
            await self.deny()

    async def mount(self) -> None:
        raise NotImplementedError

    async def unmount(self) -> None:
        raise NotImplementedError

    async def refresh(self) -> None:
        raise NotImplementedError

    def set_filter(self, value: Any) -> None:
        self.notify("warning", f"{self.name} screen has no filters")


class TableScreen(LiveScreen):
    """Screen showing one live table with a local, view-only filter."""

    table_spec: TableSpec = ORDERS_TABLE
    filter_field = "status"

    def __init__(self, client: AsyncClient, resolver: SessionResolver, debounce_seconds: Optional[float] = None):
        super().__init__(client, resolver, debounce_seconds)
        self.filter = ALL
        self.table = LiveTable(
            client, self.table_spec, self.manager, notify=self.notify, debounce_seconds=self.debounce_seconds
        )
        self.table.add_listener(self._on_change)

    async def mount(self) -> None:
        await self.table.mount()

    async def unmount(self) -> None:
        await self.table.unmount()

    async def refresh(self) -> None:
        await self.table.retry()

    def allowed_filters(self) -> List[str]:
        raise NotImplementedError

    def set_filter(self, value: Any) -> None:
        value = str(value) if value is not None else ALL
        if value != ALL and value not in self.allowed_filters():
            self.notify("warning", f"Unknown filter: {value}")
            return
        self.filter = value
        self.send_snapshot()

    def visible_rows(self) -> list:
        if self.filter == ALL:
            return self.table.project()
        return self.table.project(lambda row: getattr(row, self.filter_field) == self.filter)

    def snapshot_extra(self) -> Dict[str, Any]:
        return {}

    def send_snapshot(self) -> None:
        self.send({
            "type": "snapshot",
            "screen": self.name,
            "filter": self.filter,
            "rows": [row.model_dump(mode="json") for row in self.visible_rows()],
            **self.snapshot_extra(),
        })

    def _on_change(self, event: Optional[ChangeEvent]) -> None:
        self.send_snapshot()


class OrdersScreen(TableScreen):
    name = "orders"
    table_spec = ORDERS_TABLE
    filter_field = "status"

    def allowed_filters(self) -> List[str]:
        return [s.value for s in OrderStatus]

    def snapshot_extra(self) -> Dict[str, Any]:
        return {"unread": sum(1 for order in self.table.rows if not order.is_read)}

    def _on_change(self, event: Optional[ChangeEvent]) -> None:
        if event is not None and event.operation == ChangeOperation.INSERT:
            self.notify("info", "New order received!")
        super()._on_change(event)


class MenuScreen(TableScreen):
    name = "menu"
    table_spec = MENU_ITEMS_TABLE
    filter_field = "category"

    def allowed_filters(self) -> List[str]:
        return settings.get_menu_categories_list()


class DashboardScreen(LiveScreen):
    """Statistics recomputed from the backing store, debounced on order changes."""

    name = "dashboard"

    def __init__(self, client: AsyncClient, resolver: SessionResolver, debounce_seconds: Optional[float] = None):
        super().__init__(client, resolver, debounce_seconds)
        self.service = DashboardService(client)
        self.refresher = CoalescingRefresher(self._load_stats, delay=self.debounce_seconds, name="dashboard refresh")

    async def mount(self) -> None:
        try:
            await self.manager.subscribe(
                ORDERS_TABLE.name,
                ChangeHandlers(on_insert=self._on_order_change, on_update=self._on_order_change,
                               on_delete=self._on_order_change),
            )
        except Exception as e:
            logger.error(f"dashboard: could not subscribe to orders: {e}")
            self.notify("error", "Live updates for orders are unavailable")
        await self._load_stats()

    async def unmount(self) -> None:
        try:
            await self.refresher.close()
        finally:
            await self.manager.unsubscribe(ORDERS_TABLE.name)

    async def refresh(self) -> None:
        await self.refresher.run_now()

    def _on_order_change(self, event: ChangeEvent) -> None:
        self.refresher.trigger()

    async def _load_stats(self) -> None:
        try:
            stats = await self.service.get_stats()
        except AppError as e:
            logger.error(f"dashboard: {e.detail}")
            self.notify("error", "Failed to fetch dashboard data")
            return
        if self.closed:
            return
        self.send({"type": "dashboard", "stats": stats.model_dump(mode="json")})


SCREENS: Dict[str, Type[LiveScreen]] = {
    OrdersScreen.name: OrdersScreen,
    MenuScreen.name: MenuScreen,
    DashboardScreen.name: DashboardScreen,
}
