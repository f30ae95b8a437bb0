# giftshop/services/order_service.py
from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from giftshop.data.models.order import OrderModel
from giftshop.data.models.order_event import OrderEventModel
from giftshop.data.models.order_item import OrderItemModel
from giftshop.data.models.transaction import TransactionModel
from giftshop.domain.errors import (
    AccessDeniedError,
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from giftshop.domain.statuses import (
    CODES_REVEALED,
    Actor,
    CodeStatus,
    OrderStatus,
    TransactionStatus,
    can_transition,
)
from giftshop.repos.order_repo import OrderRepo
from giftshop.services.cart_service import CartService
from giftshop.services.catalog_service import CatalogService
from giftshop.services.inventory_service import InventoryService, code_to_dict
from giftshop.services.notification_service import NotificationService
from giftshop.services.payment_client import PaymentClient
from giftshop.utils.logging import get_logger
from giftshop.utils.settings import ORDER_PAYMENT_TIMEOUT_SECONDS, PAYMENT_METHODS, REFUND_CODE_POLICY

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def order_to_dict(order: OrderModel, reveal_codes: bool, include_events: bool = False) -> Dict[str, Any]:
    tx = order.transaction
    data = {
        "id": order.id,
        "user_id": order.user_id,
        "payment_method": order.payment_method,
        "status": order.status,
        "total_amount": order.total_amount,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "refunded_at": order.refunded_at,
        "items": [
            {
                "id": i.id,
                "variant_id": i.variant_id,
                "product_name": i.product_name,
                "value": i.value,
                "currency": i.currency,
                "unit_price": i.unit_price,
                "quantity": i.quantity,
                "subtotal": i.unit_price * i.quantity,
                "recipient_email": i.recipient_email,
                "recipient_name": i.recipient_name,
                "message": i.message,
                "codes": [code_to_dict(c) for c in i.codes] if reveal_codes else [],
            }
            for i in order.items
        ],
        "transaction": None if tx is None else {
            "id": tx.id,
            "payment_code": tx.payment_code,
            "amount": tx.amount,
            "status": tx.status,
            "created_at": tx.created_at,
            "paid_at": tx.paid_at,
        },
    }
    if include_events:
        data["events"] = [
            {
                "from_status": e.from_status,
                "to_status": e.to_status,
                "actor": e.actor,
                "note": e.note,
                "created_at": e.created_at,
            }
            for e in order.events
        ]
    return data


class OrderService:
    """
    Orkiestracja zamowien: koszyk -> zamowienie, maszyna stanow
    (PENDING -> COMPLETED | CANCELLED | FAILED, COMPLETED -> REFUNDED)
    i efekty uboczne na kodach w magazynie.

    Przejscia jednego zamowienia sa serializowane optimistic lockingiem
    na kolumnie `version`.
    """

    def __init__(
        self,
        db: Session,
        cart_service: CartService | None = None,
        payment_client: PaymentClient | None = None,
        notification_service: NotificationService | None = None,
        refund_policy: str = REFUND_CODE_POLICY,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.catalog = CatalogService(db)
        self.inventory = InventoryService(db)
        self.carts = cart_service
        self.payment_client = payment_client or PaymentClient()
        self.notification_service = notification_service or NotificationService()
        self.refund_policy = refund_policy

    # =====================================================
    # CHECKOUT
    # =====================================================
    def create_order(self, user_id: int, payment_method: str) -> Dict[str, Any]:
        """
        Use Case: zlozenie zamowienia z koszyka.

        1. Walidacja koszyka, metody platnosci i wariantow
        2. Alokacja kodow per pozycja (wszystko albo nic, kompensacja przez release)
        3. Zapis zamowienia PENDING ze snapshotem cen z katalogu
        4. Inicjacja platnosci, czyszczenie koszyka
        """
        if self.carts is None:
            raise RuntimeError("OrderService bez CartService nie obsluguje checkoutu")

        method = (payment_method or "").strip().upper()
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Nieobslugiwana metoda platnosci: {payment_method!r}")

        cart = self.carts.get_cart(user_id)
        if cart.is_empty:
            raise ValidationError("Nie mozna zlozyc zamowienia z pustym koszykiem")

        for item in cart.items:
            if item.is_gift() and not item.recipient_email:
                raise ValidationError(f"Pozycja {item.id}: brak e-maila odbiorcy prezentu")

        # snapshot z katalogu, nie z koszyka
        lines = []
        for item in cart.items:
            variant = self.catalog.get_live_variant(item.variant_id)
            lines.append({
                "item": item,
                "variant_id": variant.id,
                "product_name": variant.product.name,
                "value": variant.value,
                "currency": variant.currency,
                "unit_price": variant.price,
            })

        allocations: List[List[int]] = []
        try:
            for line in lines:
                allocations.append(self.inventory.allocate(line["variant_id"], line["item"].quantity))
        except Exception as e:
            logger.warning(f"Checkout uzytkownika {user_id} odrzucony: {e}")
            self._compensate(allocations)
            raise

        total = sum((l["unit_price"] * l["item"].quantity for l in lines), Decimal("0.00"))

        try:
            order = OrderModel(
                user_id=user_id,
                payment_method=method,
                status=OrderStatus.PENDING.value,
                total_amount=total,
                version=1,
            )
            for line in lines:
                item = line["item"]
                order.items.append(
                    OrderItemModel(
                        variant_id=line["variant_id"],
                        product_name=line["product_name"],
                        value=line["value"],
                        currency=line["currency"],
                        unit_price=line["unit_price"],
                        quantity=item.quantity,
                        recipient_email=item.recipient_email,
                        recipient_name=item.recipient_name,
                        message=item.message,
                    )
                )
            order.transaction = TransactionModel(amount=total, status=TransactionStatus.IN_PROCESS.value)
            self.repo.create_order(order)

            for order_item, code_ids in zip(order.items, allocations):
                self.inventory.bind(code_ids, order_item.id, commit=False)

            self.repo.add_event(
                OrderEventModel(order_id=order.id, to_status=OrderStatus.PENDING.value, actor=Actor.CUSTOMER.value)
            )
            order_id = order.id
            self.repo.commit()
        except Exception as e:
            logger.error(f"Blad zapisu zamowienia uzytkownika {user_id}: {e}")
            self.repo.rollback()
            self._compensate(allocations)
            raise

        logger.info(f"Order {order_id} created for user {user_id}, total {total}")

        try:
            payment_url = self.payment_client.initiate_payment(order_id, total, method)
        except PaymentGatewayError:
            # koszyk zostaje, klient moze sprobowac ponownie
            self._transition(order_id, OrderStatus.FAILED, Actor.SYSTEM, note="payment gateway unavailable")
            raise

        self.carts.clear(user_id)

        return {
            "order_id": order_id,
            "payment_url": payment_url,
            "status": OrderStatus.PENDING.value,
            "total_amount": total,
        }

    def _compensate(self, allocations: List[List[int]]):
        # zwalnia tylko kody nadal PENDING_PAYMENT, to czego sie nie uda zwolnic zbierze expire_pending
        if not allocations:
            return
        # sesja po bledzie bazy moze byc w stanie wymagajacym rollbacku
        self.repo.rollback()
        released = 0
        for code_ids in allocations:
            try:
                released += self.inventory.release_reserved(code_ids)
            except Exception as e:
                self.repo.rollback()
                logger.error(f"Nie udalo sie zwolnic kodow {code_ids}: {e}")
        logger.warning(f"Kompensacja: zwolniono {released} kodow")

    # =====================================================
    # TRANSITIONS
    # =====================================================
    def _get(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Zamowienie", order_id)
        return order

    def _transition(
        self,
        order_id: int,
        target: OrderStatus,
        actor: Actor,
        admin: bool = False,
        user_id: int | None = None,
        note: str | None = None,
        payment_code: str | None = None,
    ) -> Dict[str, Any]:
        order = self._get(order_id)

        if user_id is not None and order.user_id != user_id:
            raise AccessDeniedError("Brak dostepu do zamowienia")

        current = OrderStatus(order.status)
        if not can_transition(current, target, admin=admin):
            logger.warning(f"Order {order_id}: odrzucono przejscie {current.value} -> {target.value}")
            raise InvalidTransitionError(current, target)

        now = _utcnow()
        new_data = {"status": target.value, "version": order.version + 1, "updated_at": now}
        if target == OrderStatus.REFUNDED:
            new_data["refunded_at"] = now

        rowcount = self.repo.update_order_version(order.id, order.version, new_data)
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrencyConflictError(
                f"Zamowienie {order_id} zostalo zmienione przez inna operacje"
            )

        try:
            self._apply_side_effects(order, target, now, payment_code)
            self.repo.add_event(
                OrderEventModel(
                    order_id=order.id,
                    from_status=current.value,
                    to_status=target.value,
                    actor=actor.value,
                    note=note,
                )
            )
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id}: {current.value} -> {target.value} ({actor.value})")
        self._notify(order_id, target)
        return self.get_order_detail(order_id)

    def _apply_side_effects(self, order: OrderModel, target: OrderStatus, now: datetime, payment_code=None):
        # kody oflagowane jako ERROR w trakcie zamowienia sa pomijane
        reserved = self.repo.code_ids(order.id, statuses=[CodeStatus.PENDING_PAYMENT])
        tx = order.transaction

        if target == OrderStatus.COMPLETED:
            expected = sum(i.quantity for i in order.items)
            if len(reserved) != expected:
                logger.warning(f"Order {order.id}: {len(reserved)} z {expected} kodow do potwierdzenia")
            self.inventory.confirm(reserved, commit=False)
            if tx is not None:
                tx.status = TransactionStatus.SUCCESS.value
                tx.paid_at = now
        elif target in (OrderStatus.CANCELLED, OrderStatus.FAILED):
            self.inventory.release(reserved, commit=False)
            if tx is not None:
                tx.status = TransactionStatus.CANCELLED.value
        elif target == OrderStatus.REFUNDED:
            # kody byly juz ujawnione, nigdy nie wracaja do puli
            if self.refund_policy == "burn":
                used = self.repo.code_ids(order.id, statuses=[CodeStatus.USED])
                self.inventory.mark_error(used, commit=False)

        if payment_code and tx is not None:
            tx.payment_code = payment_code

    def _notify(self, order_id: int, target: OrderStatus):
        order = self._get(order_id)
        try:
            if target == OrderStatus.COMPLETED:
                recipients = sorted({i.recipient_email for i in order.items if i.recipient_email})
                self.notification_service.send_order_completed(order.user_id, order.id, recipients)
            elif target != OrderStatus.PENDING:
                self.notification_service.send_order_closed(order.user_id, order.id, target.value)
        except Exception as e:
            # powiadomienie jest fire-and-forget, stan zamowienia juz zapisany
            logger.error(f"Nie udalo sie wyslac powiadomienia dla zamowienia {order_id}: {e}")

    def mark_completed(self, order_id: int, payment_code: str | None = None) -> Dict[str, Any]:
        return self._transition(order_id, OrderStatus.COMPLETED, Actor.SYSTEM, payment_code=payment_code)

    def mark_failed(self, order_id: int, note: str | None = None) -> Dict[str, Any]:
        return self._transition(order_id, OrderStatus.FAILED, Actor.SYSTEM, note=note)

    def cancel(self, order_id: int, user_id: int | None = None) -> Dict[str, Any]:
        actor = Actor.CUSTOMER if user_id is not None else Actor.SYSTEM
        return self._transition(order_id, OrderStatus.CANCELLED, actor, user_id=user_id)

    def refund(self, order_id: int, actor: Actor = Actor.ADMIN) -> Dict[str, Any]:
        return self._transition(order_id, OrderStatus.REFUNDED, actor, note=f"refund, codes policy: {self.refund_policy}")

    def change_status(self, order_id: int, target) -> Dict[str, Any]:
        """
        Admin: wymuszenie statusu. Zawsze z tymi samymi efektami co naturalne
        przejscie; przejscia bez zdefiniowanej kompensacji sa odrzucane.
        """
        try:
            target = OrderStatus(target)
        except ValueError:
            raise ValidationError(f"Nieznany status zamowienia: {target!r}") from None

        if target == OrderStatus.PENDING:
            return self._reopen(order_id)
        return self._transition(order_id, target, Actor.ADMIN, admin=True, note="admin override")

    def _reopen(self, order_id: int) -> Dict[str, Any]:
        # CANCELLED/FAILED -> PENDING: kody trzeba zarezerwowac od nowa
        order = self._get(order_id)
        current = OrderStatus(order.status)
        if not can_transition(current, OrderStatus.PENDING, admin=True):
            raise InvalidTransitionError(current, OrderStatus.PENDING)

        version = order.version
        lines = [(i.id, i.variant_id, i.quantity) for i in order.items]

        allocations: List[List[int]] = []
        try:
            for _, variant_id, quantity in lines:
                allocations.append(self.inventory.allocate(variant_id, quantity))
        except Exception:
            self._compensate(allocations)
            raise

        try:
            rowcount = self.repo.update_order_version(
                order_id,
                version,
                {"status": OrderStatus.PENDING.value, "version": version + 1, "updated_at": _utcnow()},
            )
            if rowcount == 0:
                raise ConcurrencyConflictError(
                    f"Zamowienie {order_id} zostalo zmienione przez inna operacje"
                )
            for (order_item_id, _, _), code_ids in zip(lines, allocations):
                self.inventory.bind(code_ids, order_item_id, commit=False)

            order = self._get(order_id)
            if order.transaction is not None:
                order.transaction.status = TransactionStatus.IN_PROCESS.value
            self.repo.add_event(
                OrderEventModel(
                    order_id=order_id,
                    from_status=current.value,
                    to_status=OrderStatus.PENDING.value,
                    actor=Actor.ADMIN.value,
                    note="admin reopen, codes re-allocated",
                )
            )
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            self._compensate(allocations)
            raise

        logger.info(f"Order {order_id}: {current.value} -> PENDING (admin), kody zarezerwowane ponownie")
        return self.get_order_detail(order_id)

    def on_payment_result(self, order_id: int, success: bool, payment_code: str | None = None) -> Dict[str, Any]:
        """
        Callback bramki. Powtorzony callback z tym samym wynikiem jest potwierdzany bez zmian.
        """
        order = self._get(order_id)
        expected = OrderStatus.COMPLETED if success else OrderStatus.FAILED

        if OrderStatus(order.status) == expected:
            logger.info(f"Order {order_id}: powtorzony callback platnosci ({expected.value})")
            return self.get_order_detail(order_id)

        if success:
            return self.mark_completed(order_id, payment_code=payment_code)
        return self._transition(
            order_id, OrderStatus.FAILED, Actor.SYSTEM, note="payment failed", payment_code=payment_code
        )

    def expire_pending(self, now: datetime | None = None, timeout_seconds: int = ORDER_PAYMENT_TIMEOUT_SECONDS) -> List[int]:
        cutoff = (now or _utcnow()) - timedelta(seconds=timeout_seconds)
        expired = []
        for order_id in self.repo.pending_older_than(cutoff):
            try:
                self.mark_failed(order_id, note="payment timeout")
                expired.append(order_id)
            except (InvalidTransitionError, ConcurrencyConflictError) as e:
                # np. callback platnosci przyszedl w miedzyczasie
                logger.warning(f"Pominieto wygaszanie zamowienia {order_id}: {e}")

        self.inventory.release_orphaned(cutoff)
        return expired

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        order = self._get(order_id)
        if order.user_id != user_id:
            raise AccessDeniedError("Brak dostepu do zamowienia")
        return order_to_dict(order, reveal_codes=OrderStatus(order.status) in CODES_REVEALED)

    def get_order_detail(self, order_id: int) -> Dict[str, Any]:
        return order_to_dict(self._get(order_id), reveal_codes=True, include_events=True)

    def list_orders(self, user_id: int, page: int = 0, size: int = 10) -> Dict[str, Any]:
        orders = self.repo.list_orders(page * size, size, user_id=user_id)
        return {
            "content": [
                order_to_dict(o, reveal_codes=OrderStatus(o.status) in CODES_REVEALED) for o in orders
            ],
            "total_elements": self.repo.count_orders(user_id=user_id),
            "page": page,
            "size": size,
        }

    def list_all(
        self,
        status=None,
        date_from: date | None = None,
        date_to: date | None = None,
        user_id: int | None = None,
        page: int = 0,
        size: int = 20,
    ) -> Dict[str, Any]:
        filters = {
            "user_id": user_id,
            "status": status,
            "date_from": _day_start(date_from) if date_from else None,
            "date_to": _day_start(date_to + timedelta(days=1)) if date_to else None,
        }
        orders = self.repo.list_orders(page * size, size, **filters)
        return {
            "content": [order_to_dict(o, reveal_codes=True) for o in orders],
            "total_elements": self.repo.count_orders(**filters),
            "page": page,
            "size": size,
        }

    def revenue(self, date_from: date | None = None, date_to: date | None = None) -> Dict[str, Any]:
        rows = self.repo.completed_orders(
            date_from=_day_start(date_from) if date_from else None,
            date_to=_day_start(date_to + timedelta(days=1)) if date_to else None,
        )
        by_day: Dict[str, Decimal] = OrderedDict()
        for created_at, amount in rows:
            day = created_at.date().isoformat()
            by_day[day] = by_day.get(day, Decimal("0.00")) + amount
        return {
            "revenue": sum(by_day.values(), Decimal("0.00")),
            "orders": len(rows),
            "by_day": by_day,
        }
