# giftshop/api/deps.py
import hmac

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from giftshop.data.database import get_db
from giftshop.repos.cart_store import CartStore, RedisCartStore
from giftshop.services.admin_service import AdminService
from giftshop.services.cart_service import CartService
from giftshop.services.notification_service import NotificationService
from giftshop.services.order_service import OrderService
from giftshop.services.payment_client import PaymentClient
from giftshop.utils import settings

_cart_store: CartStore | None = None


def get_cart_store() -> CartStore:
    global _cart_store
    if _cart_store is None:
        _cart_store = RedisCartStore()
    return _cart_store


def get_payment_client() -> PaymentClient:
    return PaymentClient()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_current_user_id(x_user_id: int = Header(..., gt=0)) -> int:
    # tozsamosc to nieprzezroczysty credential z warstwy auth
    return x_user_id


def require_admin(x_admin_token: str = Header(...)) -> None:
    if not hmac.compare_digest(x_admin_token, settings.ADMIN_API_TOKEN):
        raise HTTPException(status_code=403, detail="Brak uprawnien administratora")


def get_cart_service(
    db: Session = Depends(get_db),
    store: CartStore = Depends(get_cart_store),
) -> CartService:
    return CartService(db=db, store=store)


def get_order_service(
    db: Session = Depends(get_db),
    carts: CartService = Depends(get_cart_service),
    payment_client: PaymentClient = Depends(get_payment_client),
    notifications: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(
        db=db,
        cart_service=carts,
        payment_client=payment_client,
        notification_service=notifications,
    )


def get_admin_service(
    db: Session = Depends(get_db),
    orders: OrderService = Depends(get_order_service),
) -> AdminService:
    return AdminService(db=db, order_service=orders)
