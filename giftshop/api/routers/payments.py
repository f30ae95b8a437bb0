# giftshop/api/routers/payments.py
from fastapi import APIRouter, Depends, HTTPException

from giftshop.api.deps import get_order_service, get_payment_client
from giftshop.domain.schemas import PaymentCallback
from giftshop.services.order_service import OrderService
from giftshop.services.payment_client import PaymentClient
from giftshop.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/callback")
def payment_callback(
    payload: PaymentCallback,
    svc: OrderService = Depends(get_order_service),
    client: PaymentClient = Depends(get_payment_client),
):
    if not client.verify_signature(payload.orderId, payload.resultCode, payload.transId, payload.signature):
        logger.warning(f"Niepoprawny podpis callbacku dla zamowienia {payload.orderId}")
        raise HTTPException(status_code=401, detail="Niepoprawny podpis")

    order = svc.on_payment_result(
        payload.orderId,
        success=payload.resultCode == 0,
        payment_code=payload.transId or None,
    )
    return {"order_id": order["id"], "status": order["status"]}
