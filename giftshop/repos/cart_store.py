# giftshop/repos/cart_store.py
from abc import ABC, abstractmethod

import redis

from giftshop.domain.cart import Cart
from giftshop.utils.logging import get_logger
from giftshop.utils.retry import redis_retry
from giftshop.utils.settings import CART_TTL_SECONDS, REDIS_URL

logger = get_logger(__name__)


class CartStore(ABC):
    """
    Port zapisu koszyka: load / save / delete po kluczu wlasciciela.
    """

    @abstractmethod
    def load(self, owner: str) -> Cart:
        """Pusty koszyk, jesli wlasciciel nie ma zapisanego."""

    @abstractmethod
    def save(self, cart: Cart) -> None:
        ...

    @abstractmethod
    def delete(self, owner: str) -> None:
        ...


class RedisCartStore(CartStore):
    """
    Koszyk jako dokument JSON w redisie pod `cart:<owner>`.
    TTL odnawiany przy kazdym zapisie, 0 = bez wygasania.
    """

    def __init__(self, client: redis.Redis | None = None, url: str | None = None, ttl: int = CART_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @staticmethod
    def key(owner: str) -> str:
        return f"cart:{owner}"

    @redis_retry()
    def load(self, owner: str) -> Cart:
        raw = self.redis.get(self.key(owner))
        if not raw:
            return Cart(owner=owner)
        return Cart.model_validate_json(raw)

    @redis_retry()
    def save(self, cart: Cart) -> None:
        key = self.key(cart.owner)
        logger.info(f"Zapis koszyka {key} ({len(cart.items)} pozycji)")
        self.redis.set(
            name=key,
            value=cart.model_dump_json(),
            ex=self.ttl or None,
        )

    @redis_retry()
    def delete(self, owner: str) -> None:
        logger.info(f"Usuwanie koszyka {self.key(owner)}")
        self.redis.delete(self.key(owner))
