import os
import tempfile
from datetime import date, timedelta
from unittest.mock import MagicMock

# przed importem giftshop: sqlite zamiast postgresa, broker w pamieci
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.gettempdir()}/giftshop-test-default.db")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ.setdefault("PAYMENT_SECRET_KEY", "test-secret")

import pytest
from sqlalchemy.orm import sessionmaker

import giftshop.data.models  # noqa: F401
from giftshop.data.database import Base, make_engine
from giftshop.domain.cart import Cart
from giftshop.repos.cart_store import CartStore
from giftshop.services.cart_service import CartService
from giftshop.services.catalog_service import CatalogService
from giftshop.services.inventory_service import InventoryService
from giftshop.services.order_service import OrderService
from giftshop.services.payment_client import PaymentClient


class InMemoryCartStore(CartStore):
    def __init__(self):
        self.data = {}
        self.saves = 0

    def load(self, owner: str) -> Cart:
        raw = self.data.get(owner)
        return Cart.model_validate_json(raw) if raw else Cart(owner=owner)

    def save(self, cart: Cart) -> None:
        self.saves += 1
        self.data[cart.owner] = cart.model_dump_json()

    def delete(self, owner: str) -> None:
        self.data.pop(owner, None)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'giftshop.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cart_store():
    return InMemoryCartStore()


@pytest.fixture
def payment_client():
    client = MagicMock(spec=PaymentClient)
    client.initiate_payment.return_value = "https://pay.example/checkout/1"
    return client


@pytest.fixture
def notifications():
    return MagicMock()


@pytest.fixture
def catalog(db):
    return CatalogService(db)


@pytest.fixture
def inventory(db):
    return InventoryService(db)


@pytest.fixture
def carts(db, cart_store):
    return CartService(db=db, store=cart_store)


@pytest.fixture
def orders(db, carts, payment_client, notifications):
    return OrderService(
        db=db,
        cart_service=carts,
        payment_client=payment_client,
        notification_service=notifications,
    )


@pytest.fixture
def product(catalog):
    return catalog.create_product(
        name="Steam Wallet",
        description="Karta podarunkowa Steam",
        picture_url="https://img.example/steam.png",
        branch_name="Valve",
    )


@pytest.fixture
def make_variant(catalog, product):
    def _make(value="10.00", price="9.50", currency="usd"):
        return catalog.add_variant(product["id"], value, price, currency)["id"]
    return _make


@pytest.fixture
def variant_id(make_variant):
    return make_variant()


@pytest.fixture
def stock(inventory):
    """stock(variant_id, n, prefix) -> lista id dodanych kodow"""
    def _stock(variant_id, n, prefix=None):
        prefix = prefix or f"V{variant_id}"
        added = inventory.add_stock(
            variant_id,
            [f"{prefix}-{i:04d}" for i in range(n)],
            date.today() + timedelta(days=365),
            date.today(),
        )
        return [c["id"] for c in added]
    return _stock
