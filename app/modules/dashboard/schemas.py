from pydantic import BaseModel
from typing import List
from decimal import Decimal

from app.core.types import Money
from app.modules.orders.schemas import OrderResponse


class PopularItem(BaseModel):
    name: str
    count: int


class DashboardStats(BaseModel):
    today_orders: int = 0
    today_revenue: Money = Decimal("0.00")
    pending_orders: int = 0
    open_orders: int = 0
    total_customers: int = 0
    total_menu_items: int = 0
    weekly_revenue: List[Money] = []  # oldest day first, today last
    popular_items: List[PopularItem] = []
    recent_orders: List[OrderResponse] = []
