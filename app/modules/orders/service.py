import logging
from supabase import AsyncClient
from app.core.exceptions import translate_backing_store_error
from app.database.rows import ensure_rows_written
from app.modules.orders.schemas import OrderCreate, OrderResponse, OrderStatus, compute_total
from typing import List, Optional

logger = logging.getLogger(__name__)

TABLE = "orders"


class OrderService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def create_order(self, order_data: OrderCreate) -> OrderResponse:
        """Place an order. Open to anyone, including unauthenticated customers."""
        payload = order_data.model_dump(mode="json")
        payload["total_amount"] = float(compute_total(order_data.items))
        payload["status"] = OrderStatus.PENDING.value
        payload["is_read"] = False
        try:
            result = await self.supabase.table(TABLE).insert(payload).execute()
        except Exception as e:
            raise translate_backing_store_error(e, "Order")
        order = OrderResponse(**result.data[0])
        logger.info(f"Order {order.id} placed by {order.customer_name} ({order.total_amount})")
        return order

    async def list_orders(self, status: Optional[OrderStatus] = None, limit: Optional[int] = None) -> List[OrderResponse]:
        """List orders, newest first"""
        try:
            query = self.supabase.table(TABLE).select("*")
            if status is not None:
                query = query.eq("status", status.value)
            query = query.order("created_at", desc=True)
            if limit:
                query = query.limit(limit)
            result = await query.execute()
        except Exception as e:
            raise translate_backing_store_error(e, "Orders")
        return [OrderResponse(**order) for order in (result.data or [])]

    async def get_order(self, order_id: str) -> OrderResponse:
        """Get order by ID"""
        try:
            result = await self.supabase.table(TABLE)\
                .select("*")\
                .eq("id", order_id)\
                .single()\
                .execute()
        except Exception as e:
            raise translate_backing_store_error(e, "Order", order_id)
        return OrderResponse(**result.data)

    async def set_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        """Move an order to any status (no transition checks) and mark it read. Admin only."""
        logger.info(f"Setting order {order_id} status to {status.value}")
        return await self._write(order_id, {"status": status.value, "is_read": True})

    async def mark_read(self, order_id: str) -> OrderResponse:
        return await self._write(order_id, {"is_read": True})

    async def delete_order(self, order_id: str) -> None:
        """Delete an order (admin only, enforced by policy)"""
        try:
            result = await self.supabase.table(TABLE)\
                .delete()\
                .eq("id", order_id)\
                .execute()
            await ensure_rows_written(self.supabase, TABLE, "Order", order_id, result.data)
        except Exception as e:
            raise translate_backing_store_error(e, "Order", order_id)
        logger.info(f"Deleted order {order_id}")

    async def _write(self, order_id: str, update_data: dict) -> OrderResponse:
        try:
            result = await self.supabase.table(TABLE)\
                .update(update_data)\
                .eq("id", order_id)\
                .execute()
            row = await ensure_rows_written(self.supabase, TABLE, "Order", order_id, result.data)
        except Exception as e:
            raise translate_backing_store_error(e, "Order", order_id)
        return OrderResponse(**row)
