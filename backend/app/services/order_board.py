"""
Admin order board with optimistic status updates.

A status change is applied locally first (phase 1) so the dashboard
responds immediately, then confirmed against the order service (phase 2).
If confirmation fails the previous status is restored, unless a newer
local change has replaced it in the meantime.
"""

import logging
from typing import Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from app.models.order import OrderRecord, OrderStatus
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)


class PendingStatusChange(BaseModel):
    """A status change applied locally and awaiting confirmation."""
    order_id: str
    previous_status: str
    new_status: str
    sequence: int


class OrderBoard:
    """Local list of orders mirrored from the order service."""

    def __init__(self, order_service: OrderService):
        self.order_service = order_service
        self.orders: List[OrderRecord] = []
        self.loading = False
        self.error: Optional[str] = None
        self._sequence = 0
        self._latest_change: Dict[str, int] = {}

    async def refresh(self) -> List[OrderRecord]:
        self.loading = True
        try:
            self.orders = await self.order_service.get_all_orders()
            self.error = None
        except PyMongoError as e:
            logger.error(f"Failed to fetch orders: {e}")
            self.orders = []
            self.error = "Failed to fetch orders"
        finally:
            self.loading = False
        return self.orders

    def find(self, order_id: str) -> Optional[OrderRecord]:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def _set_status(self, order_id: str, new_status: str) -> None:
        self.orders = [
            order.model_copy(update={"status": OrderStatus(new_status)}) if order.id == order_id else order
            for order in self.orders
        ]

    def pending_count(self) -> int:
        return sum(1 for order in self.orders if order.status == "pending")

    def pending_changes(self) -> int:
        """Number of orders with a status change still awaiting confirmation."""
        return len(self._latest_change)

    def begin_status_change(self, order_id: str, new_status: str) -> Optional[PendingStatusChange]:
        """Phase 1: apply the new status locally. Returns None for orders not on the board."""
        new_status = OrderStatus(new_status).value
        order = self.find(order_id)
        if order is None:
            return None

        self._sequence += 1
        change = PendingStatusChange(
            order_id=order_id,
            previous_status=OrderStatus(order.status).value,
            new_status=new_status,
            sequence=self._sequence,
        )
        self._latest_change[order_id] = change.sequence
        self._set_status(order_id, new_status)
        return change

    async def confirm_status_change(
        self,
        change: PendingStatusChange,
        payment_status: Optional[str] = None,
        note: Optional[str] = None
    ) -> dict:
        """
        Phase 2: persist the change.

        On failure the local status is rolled back and the error re-raised.
        """
        try:
            response = await self.order_service.update_order_status(
                change.order_id,
                change.new_status,
                payment_status=payment_status,
                note=note
            )
        except (HTTPException, PyMongoError) as e:
            detail = getattr(e, "detail", str(e))
            logger.error(f"Failed to update order status for {change.order_id}: {detail}")
            self.error = str(detail)
            if self._latest_change.get(change.order_id) == change.sequence:
                self._set_status(change.order_id, change.previous_status)
            raise
        finally:
            if self._latest_change.get(change.order_id) == change.sequence:
                del self._latest_change[change.order_id]

        self.error = None
        return response

    async def update_order_status(
        self,
        order_id: str,
        new_status: str,
        payment_status: Optional[str] = None,
        note: Optional[str] = None
    ) -> dict:
        """Apply then confirm a status change. Orders not on the board go straight to the service."""
        change = self.begin_status_change(order_id, new_status)
        if change is None:
            return await self.order_service.update_order_status(
                order_id,
                OrderStatus(new_status).value,
                payment_status=payment_status,
                note=note
            )
        return await self.confirm_status_change(change, payment_status=payment_status, note=note)

    async def delete_order(self, order_id: str) -> dict:
        """Delete on the backend first; only then drop it locally."""
        try:
            response = await self.order_service.delete_order(order_id)
        except (HTTPException, PyMongoError) as e:
            detail = getattr(e, "detail", str(e))
            logger.error(f"Failed to delete order {order_id}: {detail}")
            self.error = str(detail)
            raise

        self.orders = [order for order in self.orders if order.id != order_id]
        self._latest_change.pop(order_id, None)
        return response
