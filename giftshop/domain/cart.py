# giftshop/domain/cart.py
"""
Agregat koszyka.

Koszyk jest niemutowalny: kazda operacja zwraca nowy snapshot, a zapis
robi CartService przez CartStore. Bledne ilosci (< 1) to no-op, nie blad.
"""
import uuid
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class CartItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: int
    variant_id: int
    product_name: str
    branch_name: str = ""
    picture_url: str = ""
    price: Decimal
    value: Decimal
    currency: str
    quantity: int = Field(..., ge=1)

    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    message: Optional[str] = None

    @computed_field
    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def is_gift(self) -> bool:
        return bool(self.recipient_email or self.recipient_name or self.message)


RECIPIENT_FIELDS = ("recipient_email", "recipient_name", "message")


def new_item_id(product_id: int, variant_id: int) -> str:
    return f"{product_id}-{variant_id}-{uuid.uuid4().hex[:8]}"


class Cart(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str
    items: List[CartItem] = Field(default_factory=list)

    @computed_field
    @property
    def total_items(self) -> int:
        return sum(i.quantity for i in self.items)

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        return sum((i.subtotal for i in self.items), Decimal("0.00"))

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, item_id: str) -> Optional[CartItem]:
        return next((i for i in self.items if i.id == item_id), None)

    def _with_items(self, items) -> "Cart":
        return self.model_copy(update={"items": list(items)})

    def add_item(self, item: CartItem, quantity: int) -> "Cart":
        """
        Ten sam produkt + wariant (nominal i cena) zwieksza ilosc istniejacej
        pozycji, inaczej dopisuje nowa na koncu.
        """
        if quantity < 1:
            return self

        for existing in self.items:
            if existing.product_id == item.product_id and existing.variant_id == item.variant_id:
                bumped = existing.model_copy(update={"quantity": existing.quantity + quantity})
                return self._with_items(bumped if i.id == existing.id else i for i in self.items)

        return self._with_items([*self.items, item.model_copy(update={"quantity": quantity})])

    def update_quantity(self, item_id: str, quantity: int) -> "Cart":
        if quantity < 1 or self.find(item_id) is None:
            return self
        return self._with_items(
            i.model_copy(update={"quantity": quantity}) if i.id == item_id else i
            for i in self.items
        )

    def remove_item(self, item_id: str) -> "Cart":
        return self._with_items(i for i in self.items if i.id != item_id)

    def update_recipient(self, item_id: str, **changes) -> "Cart":
        # tylko przekazane pola, reszta zostaje jak byla
        changes = {k: v for k, v in changes.items() if k in RECIPIENT_FIELDS}
        if self.find(item_id) is None or not changes:
            return self
        return self._with_items(
            i.model_copy(update=changes) if i.id == item_id else i for i in self.items
        )

    def clear(self) -> "Cart":
        return self._with_items([])
