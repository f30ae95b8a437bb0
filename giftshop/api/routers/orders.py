# giftshop/api/routers/orders.py
from fastapi import APIRouter, Depends, Query

from giftshop.api.deps import get_current_user_id, get_order_service
from giftshop.domain.schemas import OrderCreate, OrderCreated, OrderOut, OrderPage
from giftshop.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderCreated, status_code=201)
def create_order(
    payload: OrderCreate,
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_order_service),
):
    """
    Sklada zamowienie z koszyka uzytkownika, zwraca adres platnosci.
    Przy bledzie koszyk zostaje nietkniety.
    """
    return svc.create_order(user_id, payload.payment_method)


@router.get("", response_model=OrderPage)
def order_history(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_orders(user_id, page, size)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_order_service),
):
    """
    Kody aktywacyjne sa widoczne dopiero po oplaceniu zamowienia.
    """
    return svc.get_order(order_id, user_id)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_order_service),
):
    svc.cancel(order_id, user_id=user_id)
    return svc.get_order(order_id, user_id)
