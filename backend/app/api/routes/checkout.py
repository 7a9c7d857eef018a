from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_checkout_orchestrator
from app.core.errors import ErrorKind
from app.models.order import BuyerInfo
from app.schemas.checkout import CheckoutRequest, CheckoutResponse, CheckoutResult, OrderSummary
from app.services.checkout_service import CheckoutOrchestrator

router = APIRouter()

ERROR_STATUS_CODES = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STOCK_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_409_CONFLICT,
    ErrorKind.TRANSIENT_NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def checkout_error(result: CheckoutResult) -> HTTPException:
    """Convert a failed checkout attempt into an HTTP error."""
    error = result.error
    detail = error.to_dict()
    detail["state"] = result.state.value
    detail["adjustments"] = [a.model_dump(mode="json") for a in result.adjustments]
    detail["notices"] = [a.message() for a in result.adjustments]
    return HTTPException(
        status_code=ERROR_STATUS_CODES.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=detail
    )


@router.get("/summary", response_model=OrderSummary)
async def get_order_summary(
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator)
):
    """
    Order summary for the current cart: subtotal, shipping, tax and total.
    """
    return await orchestrator.preview_totals()


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    request: CheckoutRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator)
):
    """
    Place an order from the session's cart.

    This will:
    1. Validate the buyer's name, email, phone and address
    2. Re-check the cart against current stock
    3. Submit the order and clear the cart

    If stock changed, the cart is updated and a 409 lists what changed so
    the buyer can review before submitting again. Other failures leave the
    cart as it was.
    """
    buyer = BuyerInfo(**request.model_dump())
    result = await orchestrator.checkout(buyer)

    if not result.ok:
        raise checkout_error(result)

    return CheckoutResponse(
        state=result.state,
        order=result.order,
        adjustments=result.adjustments,
        notices=[a.message() for a in result.adjustments],
    )
