"""
Order service: order submission and admin order management.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.core.errors import ErrorKind
from app.models.order import OrderDraft, OrderRecord, PaymentStatus, SubmissionResult

logger = logging.getLogger(__name__)


def _order_query(order_id: str) -> dict:
    try:
        return {"_id": ObjectId(order_id)}
    except (InvalidId, TypeError):
        return {"_id": order_id}


class OrderService:
    """Service class for order submission and management."""

    # Valid status transitions
    STATUS_TRANSITIONS = {
        "pending": ["confirmed", "cancelled"],
        "confirmed": ["shipped", "cancelled"],
        "shipped": ["delivered"],
        "delivered": [],  # Final state
        "cancelled": []   # Final state
    }

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    @staticmethod
    def validate_status_transition(current_status: str, new_status: str) -> Tuple[bool, Optional[str]]:
        """
        Validate if status transition is allowed.
        Returns (is_valid, error_message)
        """
        if current_status not in OrderService.STATUS_TRANSITIONS:
            return False, f"Invalid current status: {current_status}"

        valid_next_statuses = OrderService.STATUS_TRANSITIONS[current_status]

        if new_status not in valid_next_statuses:
            if not valid_next_statuses:
                return False, f"Order is in final state '{current_status}' and cannot be modified"
            return False, f"Cannot transition from '{current_status}' to '{new_status}'. Valid transitions: {', '.join(valid_next_statuses)}"

        return True, None

    @staticmethod
    def get_valid_next_statuses(current_status: str) -> List[str]:
        """Get list of valid next statuses for the admin dashboard."""
        return list(OrderService.STATUS_TRANSITIONS.get(current_status, []))

    async def submit_order(self, draft: OrderDraft) -> SubmissionResult:
        """
        Create an order from a draft.

        Never raises for database failures; they are reported as a
        transient error in the result.
        """
        document = draft.to_document()
        now = datetime.now(timezone.utc)
        document["created_at"] = now
        document["updated_at"] = now

        try:
            result = await self.db.orders.insert_one(document)
        except PyMongoError as e:
            logger.error(f"Failed to create order: {e}")
            return SubmissionResult.failed(
                ErrorKind.TRANSIENT_NETWORK,
                "Failed to place order. Please try again."
            )

        document["_id"] = result.inserted_id
        order = OrderRecord.from_document(document)
        logger.info(f"Order {order.id} created for {draft.email} (total {draft.total})")
        return SubmissionResult.ok(order)

    async def get_all_orders(self) -> List[OrderRecord]:
        """Get all orders, newest first."""
        cursor = self.db.orders.find({}).sort("created_at", -1)
        documents = await cursor.to_list(length=None)
        return [OrderRecord.from_document(document) for document in documents]

    async def get_order(self, order_id: str) -> OrderRecord:
        document = await self.db.orders.find_one(_order_query(order_id))
        if not document:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found"
            )
        return OrderRecord.from_document(document)

    async def update_order_status(
        self,
        order_id: str,
        new_status: str,
        payment_status: Optional[str] = None,
        note: Optional[str] = None
    ) -> dict:
        """
        Update order status with transition validation.
        """
        order = await self.db.orders.find_one(_order_query(order_id))
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found"
            )

        current_status = order["status"]
        is_valid, error_msg = OrderService.validate_status_transition(current_status, new_status)
        if not is_valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error_msg
            )

        # Prepare update data
        now = datetime.now(timezone.utc)
        update_data = {
            "status": new_status,
            "updated_at": now
        }
        if payment_status:
            update_data["payment_status"] = PaymentStatus(payment_status).value

        history_entry = {
            "status": new_status,
            "changed_at": now,
            "note": note
        }

        await self.db.orders.update_one(
            {"_id": order["_id"]},
            {
                "$set": update_data,
                "$push": {"status_history": history_entry}
            }
        )

        logger.info(f"Order {order_id} status {current_status} -> {new_status}")
        return {
            "message": f"Order status updated to {new_status}",
            "order_id": order_id,
            "old_status": current_status,
            "new_status": new_status,
            "updated_at": now
        }

    async def delete_order(self, order_id: str) -> dict:
        result = await self.db.orders.delete_one(_order_query(order_id))
        if result.deleted_count == 0:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found"
            )
        logger.info(f"Order {order_id} deleted")
        return {"message": "Order deleted", "order_id": order_id}
