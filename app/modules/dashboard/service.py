import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from supabase import AsyncClient

from app.config import settings
from app.core.exceptions import translate_backing_store_error
from app.core.roles import Role
from app.modules.dashboard.schemas import DashboardStats, PopularItem
from app.modules.orders.schemas import OrderResponse, OrderStatus, TERMINAL_STATUSES
from app.modules.orders.service import OrderService

logger = logging.getLogger(__name__)

WEEK_DAYS = 7
POPULAR_LIMIT = 5
RECENT_LIMIT = 5


def _day_start(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def compute_order_stats(orders: List[OrderResponse], now: Optional[datetime] = None) -> DashboardStats:
    """Order-derived dashboard figures. Orders without created_at are ignored for day buckets."""
    now = now or datetime.now(timezone.utc)
    today = _day_start(now)
    first_day = today - timedelta(days=WEEK_DAYS - 1)

    weekly = [Decimal("0.00")] * WEEK_DAYS
    today_orders = 0
    today_revenue = Decimal("0.00")
    pending = 0
    popular: Counter = Counter()

    for order in orders:
        created = order.created_at
        if created is None:
            continue
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        if created < first_day or created >= today + timedelta(days=1):
            continue
        weekly[(created - first_day).days] += order.total_amount
        for item in order.items:
            popular[item.name] += item.quantity
        if created >= today:
            today_orders += 1
            today_revenue += order.total_amount
            if order.status == OrderStatus.PENDING:
                pending += 1

    return DashboardStats(
        today_orders=today_orders,
        today_revenue=today_revenue,
        pending_orders=pending,
        open_orders=sum(1 for order in orders if order.status not in TERMINAL_STATUSES),
        weekly_revenue=weekly,
        popular_items=[PopularItem(name=name, count=count) for name, count in popular.most_common(POPULAR_LIMIT)],
        recent_orders=orders[:RECENT_LIMIT],
    )


class DashboardService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase
        self.orders = OrderService(supabase)

    async def _count(self, table: str, **filters) -> int:
        query = self.supabase.table(table).select("id", count="exact", head=True)
        for column, values in filters.items():
            query = query.in_(column, values)
        result = await query.execute()
        return result.count or 0

    async def get_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        now = now or datetime.now(timezone.utc)
        since = _day_start(now) - timedelta(days=WEEK_DAYS - 1)
        try:
            result = await self.supabase.table("orders")\
                .select("*")\
                .gte("created_at", since.isoformat())\
                .order("created_at", desc=True)\
                .execute()
            week_orders = [OrderResponse(**row) for row in (result.data or [])]
            total_customers = await self._count(
                settings.profiles_table, role=[Role.CUSTOMER.value, Role.USER.value]
            )
            total_menu_items = await self._count("menu_items")
            recent = await self.orders.list_orders(limit=RECENT_LIMIT)
        except Exception as e:
            raise translate_backing_store_error(e, "Dashboard data")

        stats = compute_order_stats(week_orders, now)
        return stats.model_copy(update={
            "total_customers": total_customers,
            "total_menu_items": total_menu_items,
            "recent_orders": recent,
        })
