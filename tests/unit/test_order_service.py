"""Unit tests for OrderService and order schemas."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.exceptions import AccessDeniedError, NotFoundError, TransientFetchError
from app.modules.orders.schemas import OrderCreate, OrderItem, OrderStatus, compute_total
from app.modules.orders.service import OrderService

ADMIN_ID = "11111111-1111-1111-1111-111111111111"
CUSTOMER_ID = "33333333-3333-3333-3333-333333333333"


@pytest.mark.unit
class TestOrderSchemas:
    """Test suite for order schemas."""

    def test_total_is_sum_of_line_totals(self) -> None:
        items = [
            OrderItem(name="Pad Thai", quantity=2, price=Decimal("12.99")),
            OrderItem(name="Spring Rolls", quantity=3, price=Decimal("6.50")),
        ]

        assert compute_total(items) == Decimal("45.48")

    def test_empty_order_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OrderCreate(customer_name="Jane", items=[])

    @pytest.mark.parametrize("price", ["abc", "-1", "1.234"])
    def test_invalid_price_is_rejected(self, price: str) -> None:
        with pytest.raises(ValidationError):
            OrderItem(name="Soup", quantity=1, price=price)

    def test_zero_quantity_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OrderItem(name="Soup", quantity=0, price="3.00")


@pytest.mark.unit
class TestOrderService:
    """Test suite for OrderService."""

    @pytest.fixture
    def order_data(self) -> OrderCreate:
        return OrderCreate(
            customer_name="Walk In",
            customer_email="walkin@kitchen.io",
            items=[{"name": "Pad Thai", "quantity": 2, "price": "12.99"}],
        )

    @pytest.mark.asyncio
    async def test_anonymous_customer_can_place_order(self, store, order_data) -> None:
        order = await OrderService(store.client()).create_order(order_data)

        assert order.status == OrderStatus.PENDING
        assert order.is_read is False
        assert order.total_amount == Decimal("25.98")
        assert len(store.tables["orders"]) == 3

    @pytest.mark.asyncio
    async def test_anonymous_customer_cannot_change_status(self, store, order_data) -> None:
        """Placing an order is open to anyone; moving it through the workflow is not."""
        service = OrderService(store.client())
        order = await service.create_order(order_data)

        with pytest.raises(AccessDeniedError):
            await service.set_status(order.id, OrderStatus.CONFIRMED)

        assert store.tables["orders"][-1]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_non_admin_cannot_delete(self, store) -> None:
        with pytest.raises(AccessDeniedError):
            await OrderService(store.client(CUSTOMER_ID)).delete_order("order-1")

        assert any(row["id"] == "order-1" for row in store.tables["orders"])

    @pytest.mark.asyncio
    async def test_set_status_marks_read(self, store) -> None:
        order = await OrderService(store.client(ADMIN_ID)).set_status("order-1", OrderStatus.PREPARING)

        assert order.status == OrderStatus.PREPARING
        assert order.is_read is True

    @pytest.mark.asyncio
    async def test_any_transition_is_allowed(self, store) -> None:
        """Terminal statuses can be reopened; there is no transition table."""
        order = await OrderService(store.client(ADMIN_ID)).set_status("order-2", OrderStatus.PENDING)

        assert order.status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_set_status_unknown_order(self, store) -> None:
        with pytest.raises(NotFoundError):
            await OrderService(store.client(ADMIN_ID)).set_status("missing", OrderStatus.READY)

    @pytest.mark.asyncio
    async def test_mark_read(self, store) -> None:
        order = await OrderService(store.client(ADMIN_ID)).mark_read("order-1")

        assert order.is_read is True
        assert order.status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_list_orders_filters_by_status(self, store) -> None:
        service = OrderService(store.client(ADMIN_ID))

        everything = await service.list_orders()
        completed = await service.list_orders(status=OrderStatus.COMPLETED)
        latest = await service.list_orders(limit=1)

        assert [order.id for order in everything] == ["order-1", "order-2"]
        assert [order.id for order in completed] == ["order-2"]
        assert [order.id for order in latest] == ["order-1"]

    @pytest.mark.asyncio
    async def test_get_missing_order(self, store) -> None:
        with pytest.raises(NotFoundError):
            await OrderService(store.client()).get_order("missing")

    @pytest.mark.asyncio
    async def test_delete_order(self, store) -> None:
        await OrderService(store.client(ADMIN_ID)).delete_order("order-2")

        assert [row["id"] for row in store.tables["orders"]] == ["order-1"]

    @pytest.mark.asyncio
    async def test_backing_store_outage(self, store) -> None:
        store.failing_tables.add("orders")

        with pytest.raises(TransientFetchError):
            await OrderService(store.client(ADMIN_ID)).list_orders()
