# giftshop/api/routers/carts.py
from fastapi import APIRouter, Depends

from giftshop.api.deps import get_cart_service, get_current_user_id
from giftshop.domain.schemas import CartOut, ItemIn, QuantityIn, RecipientIn
from giftshop.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_cart(user_id).model_dump()


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.add_item(user_id, payload.variant_id, payload.quantity).model_dump()


@router.patch("/items/{item_id}", response_model=CartOut)
def update_quantity(
    item_id: str,
    payload: QuantityIn,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.update_quantity(user_id, item_id, payload.quantity).model_dump()


@router.patch("/items/{item_id}/recipient", response_model=CartOut)
def update_recipient(
    item_id: str,
    payload: RecipientIn,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    # tylko pola przeslane w body
    fields = payload.model_dump(exclude_unset=True)
    return svc.update_recipient(user_id, item_id, **fields).model_dump()


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: str,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.remove_item(user_id, item_id).model_dump()


@router.delete("", response_model=CartOut)
def clear_cart(
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.clear(user_id).model_dump()
