from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.modules.orders.schemas import OrderCreate, OrderResponse, OrderStatus, OrderStatusUpdate
from app.modules.orders.service import OrderService
from app.modules.users.schemas import ProfileResponse
from app.core.dependencies import get_user_supabase, require_role
from app.core.roles import Role
from supabase import AsyncClient
from typing import List, Optional

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_service(supabase: AsyncClient = Depends(get_user_supabase)) -> OrderService:
    return OrderService(supabase)


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service),
):
    """Place an order (public, no sign-in required)"""
    return await service.create_order(order_data)


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: OrderService = Depends(get_order_service),
):
    """List orders, newest first (admin only)"""
    return await service.list_orders(status=status_filter)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    """Get an order (public, e.g. for a customer tracking page)"""
    return await service.get_order(order_id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def set_order_status(
    order_id: str,
    status_data: OrderStatusUpdate,
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: OrderService = Depends(get_order_service),
):
    """Set an order's status (admin only). Any status may follow any other."""
    return await service.set_status(order_id, status_data.status)


@router.post("/{order_id}/read", response_model=OrderResponse)
async def mark_order_read(
    order_id: str,
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: OrderService = Depends(get_order_service),
):
    """Mark an order as read (admin only)"""
    return await service.mark_read(order_id)


@router.delete("/{order_id}", status_code=204)
async def delete_order(
    order_id: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: OrderService = Depends(get_order_service),
):
    """Delete an order (admin only, explicit confirmation required)"""
    if not confirm:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Deletion must be confirmed with confirm=true")
    await service.delete_order(order_id)
    return None
