from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_order_board, get_order_service, require_admin
from app.models.order import OrderRecord, OrderStatus, PaymentStatus
from app.services.order_board import OrderBoard
from app.services.order_service import OrderService

router = APIRouter(dependencies=[Depends(require_admin)])


class UpdateOrderStatusRequest(BaseModel):
    """Schema for updating an order's status."""
    status: OrderStatus
    payment_status: Optional[PaymentStatus] = None
    note: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "confirmed",
                "payment_status": "paid",
                "note": "Payment screenshot received"
            }
        }


class OrderBoardResponse(BaseModel):
    """Schema for the admin dashboard's order list."""
    orders: List[OrderRecord]
    pending_count: int
    pending_changes: int
    error: Optional[str] = None


@router.get("", response_model=List[OrderRecord])
async def list_orders(
    status: Optional[OrderStatus] = None,
    order_service: OrderService = Depends(get_order_service)
):
    """
    Get all orders, newest first (admin only).
    """
    orders = await order_service.get_all_orders()
    if status is not None:
        orders = [order for order in orders if order.status == status]
    return orders


@router.get("/board", response_model=OrderBoardResponse)
async def get_order_board_view(
    refresh: bool = True,
    board: OrderBoard = Depends(get_order_board)
):
    """
    Dashboard view of all orders (admin only).

    With `refresh=false` the board is returned as last loaded, including
    status changes still awaiting confirmation.
    """
    if refresh or not board.orders:
        await board.refresh()
    return OrderBoardResponse(
        orders=board.orders,
        pending_count=board.pending_count(),
        pending_changes=board.pending_changes(),
        error=board.error,
    )


@router.get("/{order_id}", response_model=OrderRecord)
async def get_order(
    order_id: str,
    order_service: OrderService = Depends(get_order_service)
):
    """Get an order by id (admin only)."""
    return await order_service.get_order(order_id)


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    board: OrderBoard = Depends(get_order_board)
):
    """
    Update order status (admin only).

    The board shows the new status right away and restores the previous
    one if the update is rejected.

    Valid transitions:
    - pending → confirmed, cancelled
    - confirmed → shipped, cancelled
    - shipped → delivered
    """
    response = await board.update_order_status(
        order_id,
        request.status.value,
        payment_status=request.payment_status.value if request.payment_status else None,
        note=request.note
    )
    response["valid_next_statuses"] = OrderService.get_valid_next_statuses(request.status.value)
    return response


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    board: OrderBoard = Depends(get_order_board)
):
    """Delete an order (admin only)."""
    return await board.delete_order(order_id)
