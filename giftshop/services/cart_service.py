# giftshop/services/cart_service.py
from sqlalchemy.orm import Session

from giftshop.domain.cart import Cart, CartItem, new_item_id
from giftshop.repos.cart_store import CartStore
from giftshop.services.catalog_service import CatalogService
from giftshop.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use case'y koszyka: kazda komenda to load -> zmiana agregatu -> save,
    zwracany jest nowy snapshot koszyka. Zero wywolan sieciowych poza
    zapisem w CartStore.
    """

    def __init__(self, db: Session, store: CartStore):
        self.catalog = CatalogService(db)
        self.store = store

    @staticmethod
    def owner_key(user_id: int) -> str:
        return f"user:{user_id}"

    def _commit(self, before: Cart, after: Cart) -> Cart:
        # no-op nie zapisuje niczego
        if after is not before:
            self.store.save(after)
        return after

    #query
    def get_cart(self, user_id: int) -> Cart:
        return self.store.load(self.owner_key(user_id))

    #commands
    def add_item(self, user_id: int, variant_id: int, quantity: int) -> Cart:
        cart = self.get_cart(user_id)
        if quantity < 1:
            return cart

        variant = self.catalog.get_live_variant(variant_id)
        product = variant.product

        item = CartItem(
            id=new_item_id(product.id, variant.id),
            product_id=product.id,
            variant_id=variant.id,
            product_name=product.name,
            branch_name=product.branch_name,
            picture_url=product.picture_url,
            price=variant.price,
            value=variant.value,
            currency=variant.currency,
            quantity=quantity,
        )

        logger.info(f"Dodaje wariant {variant_id} x{quantity} do koszyka {cart.owner}")
        return self._commit(cart, cart.add_item(item, quantity))

    def update_quantity(self, user_id: int, item_id: str, quantity: int) -> Cart:
        cart = self.get_cart(user_id)
        return self._commit(cart, cart.update_quantity(item_id, quantity))

    def remove_item(self, user_id: int, item_id: str) -> Cart:
        cart = self.get_cart(user_id)
        logger.info(f"Usuwanie pozycji {item_id} z koszyka {cart.owner}")
        return self._commit(cart, cart.remove_item(item_id))

    def update_recipient(self, user_id: int, item_id: str, **recipient) -> Cart:
        cart = self.get_cart(user_id)
        return self._commit(cart, cart.update_recipient(item_id, **recipient))

    def clear(self, user_id: int) -> Cart:
        # po zlozeniu zamowienia i przy wylogowaniu
        owner = self.owner_key(user_id)
        self.store.delete(owner)
        logger.info(f"Koszyk {owner} wyczyszczony")
        return Cart(owner=owner)
