"""
Tests for order service business logic.
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from fastapi import HTTPException, status
from pymongo.errors import ServerSelectionTimeoutError

from app.core.errors import ErrorKind
from app.models.order import OrderDraft, OrderItem, ShippingAddress
from app.services.order_service import OrderService


def make_draft(**overrides):
    data = {
        "email": "ana@example.com",
        "shipping_address": ShippingAddress(
            name="Ana Cruz",
            email="ana@example.com",
            phone="09171234567",
            address="12 Sampaguita St, Quezon City"
        ),
        "items": [OrderItem(product_id="1", name="Rose Fuzzy Bouquet", quantity=2, price=Decimal("24.99"))],
        "subtotal": Decimal("49.98"),
        "shipping_fee": Decimal("350.00"),
        "tax": Decimal("4.00"),
        "total": Decimal("403.98"),
        "idempotency_key": "key-1",
    }
    data.update(overrides)
    return OrderDraft(**data)


class TestStatusTransitions:
    """Test status transition validation."""

    def test_valid_pending_to_confirmed(self):
        """Test valid transition from pending to confirmed."""
        is_valid, error = OrderService.validate_status_transition("pending", "confirmed")
        assert is_valid is True
        assert error is None

    def test_valid_pending_to_cancelled(self):
        """Test valid transition from pending to cancelled."""
        is_valid, error = OrderService.validate_status_transition("pending", "cancelled")
        assert is_valid is True
        assert error is None

    def test_valid_confirmed_to_shipped(self):
        is_valid, error = OrderService.validate_status_transition("confirmed", "shipped")
        assert is_valid is True
        assert error is None

    def test_valid_shipped_to_delivered(self):
        is_valid, error = OrderService.validate_status_transition("shipped", "delivered")
        assert is_valid is True
        assert error is None

    def test_invalid_pending_to_shipped(self):
        """Test invalid transition from pending to shipped (must go through confirmed)."""
        is_valid, error = OrderService.validate_status_transition("pending", "shipped")
        assert is_valid is False
        assert "Cannot transition" in error

    def test_invalid_shipped_to_cancelled(self):
        """Test invalid transition from shipped to cancelled."""
        is_valid, error = OrderService.validate_status_transition("shipped", "cancelled")
        assert is_valid is False
        assert "Cannot transition" in error

    def test_invalid_delivered_to_any(self):
        """Test that delivered is a final state."""
        is_valid, error = OrderService.validate_status_transition("delivered", "cancelled")
        assert is_valid is False
        assert "final state" in error

    def test_invalid_cancelled_to_any(self):
        """Test that cancelled is a final state."""
        is_valid, error = OrderService.validate_status_transition("cancelled", "confirmed")
        assert is_valid is False
        assert "final state" in error

    def test_unknown_current_status(self):
        is_valid, error = OrderService.validate_status_transition("lost", "confirmed")
        assert is_valid is False
        assert "Invalid current status" in error


class TestGetValidNextStatuses:
    """Test getting valid next statuses."""

    def test_pending_order(self):
        statuses = OrderService.get_valid_next_statuses("pending")
        assert set(statuses) == {"confirmed", "cancelled"}

    def test_shipped_order(self):
        assert OrderService.get_valid_next_statuses("shipped") == ["delivered"]

    def test_final_states(self):
        assert OrderService.get_valid_next_statuses("delivered") == []
        assert OrderService.get_valid_next_statuses("cancelled") == []


class TestSubmitOrder:
    """Test order submission."""

    @pytest.mark.asyncio
    async def test_submit_creates_order(self):
        """Test that a draft is stored and echoed back with its new id."""
        mock_db = MagicMock()
        order_id = ObjectId()
        mock_db.orders.insert_one = AsyncMock(return_value=MagicMock(inserted_id=order_id))

        service = OrderService(mock_db)
        result = await service.submit_order(make_draft())

        assert result.success is True
        assert result.order.id == str(order_id)
        assert result.order.total == Decimal("403.98")
        assert result.order.status == "pending"
        assert result.order.payment_status == "unpaid"

        stored = mock_db.orders.insert_one.call_args.args[0]
        assert stored["total"] == "403.98"
        assert stored["idempotency_key"] == "key-1"
        assert stored["items"][0]["product_id"] == "1"
        assert isinstance(stored["created_at"], datetime)

    @pytest.mark.asyncio
    async def test_database_failure_is_transient(self):
        """Test that a database outage is reported, not raised."""
        mock_db = MagicMock()
        mock_db.orders.insert_one = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))

        service = OrderService(mock_db)
        result = await service.submit_order(make_draft())

        assert result.success is False
        assert result.order is None
        assert result.error.kind == ErrorKind.TRANSIENT_NETWORK


class TestOrderAdmin:
    """Test admin order management."""

    @pytest.mark.asyncio
    async def test_update_status(self):
        order_id = ObjectId()
        mock_db = MagicMock()
        mock_db.orders.find_one = AsyncMock(return_value={"_id": order_id, "status": "pending"})
        mock_db.orders.update_one = AsyncMock()

        service = OrderService(mock_db)
        result = await service.update_order_status(str(order_id), "confirmed", payment_status="paid", note="GCash received")

        assert result["old_status"] == "pending"
        assert result["new_status"] == "confirmed"

        query, update = mock_db.orders.update_one.call_args.args
        assert query == {"_id": order_id}
        assert update["$set"]["status"] == "confirmed"
        assert update["$set"]["payment_status"] == "paid"
        assert update["$push"]["status_history"]["note"] == "GCash received"

    @pytest.mark.asyncio
    async def test_update_invalid_transition(self):
        mock_db = MagicMock()
        mock_db.orders.find_one = AsyncMock(return_value={"_id": "ord_1", "status": "delivered"})
        mock_db.orders.update_one = AsyncMock()

        service = OrderService(mock_db)
        with pytest.raises(HTTPException) as exc_info:
            await service.update_order_status("ord_1", "cancelled")

        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST
        mock_db.orders.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_missing_order(self):
        mock_db = MagicMock()
        mock_db.orders.find_one = AsyncMock(return_value=None)

        service = OrderService(mock_db)
        with pytest.raises(HTTPException) as exc_info:
            await service.update_order_status("nope", "confirmed")

        assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_missing_order(self):
        mock_db = MagicMock()
        mock_db.orders.delete_one = AsyncMock(return_value=MagicMock(deleted_count=0))

        service = OrderService(mock_db)
        with pytest.raises(HTTPException) as exc_info:
            await service.delete_order("nope")

        assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_get_all_orders(self):
        now = datetime.now(timezone.utc)
        document = make_draft().to_document()
        document.update({"_id": ObjectId(), "created_at": now, "status_history": []})

        mock_cursor = MagicMock()
        mock_cursor.to_list = AsyncMock(return_value=[document])
        mock_db = MagicMock()
        mock_db.orders.find = MagicMock(return_value=MagicMock(sort=MagicMock(return_value=mock_cursor)))

        orders = await OrderService(mock_db).get_all_orders()

        assert len(orders) == 1
        assert orders[0].email == "ana@example.com"
        assert orders[0].subtotal == Decimal("49.98")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
