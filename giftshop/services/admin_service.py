# giftshop/services/admin_service.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from giftshop.services.catalog_service import CatalogService
from giftshop.services.inventory_service import InventoryService
from giftshop.services.order_service import OrderService
from giftshop.utils.logging import get_logger

logger = get_logger(__name__)


def parse_code_block(text: str) -> List[str]:
    """Jeden kod na linie, puste linie odrzucane. Duplikaty wykrywa magazyn, nie parser."""
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


class AdminService:
    """
    Fasada operacji administracyjnych. Nie omija regul magazynu ani maszyny
    stanow zamowien: wszystko idzie przez te same serwisy co flow klienta.
    """

    def __init__(self, db: Session, order_service: OrderService | None = None):
        self.catalog = CatalogService(db)
        self.inventory = InventoryService(db)
        self.orders = order_service or OrderService(db)

    # produkty / warianty
    def create_product(self, **fields) -> Dict[str, Any]:
        return self.catalog.create_product(**fields)

    def update_product(self, product_id: int, **fields) -> Dict[str, Any]:
        return self.catalog.update_product(product_id, **fields)

    def delete_product(self, product_id: int) -> None:
        self.catalog.delete_product(product_id)

    def add_variant(self, product_id: int, value, price, currency) -> Dict[str, Any]:
        return self.catalog.add_variant(product_id, value, price, currency)

    def update_variant(self, variant_id: int, **fields) -> Dict[str, Any]:
        return self.catalog.update_variant(variant_id, **fields)

    def delete_variant(self, variant_id: int) -> None:
        self.catalog.delete_variant(variant_id)

    # magazyn
    def import_stock(self, variant_id: int, codes_text: str, expiration_date, activation_date) -> Dict[str, Any]:
        codes = parse_code_block(codes_text)
        logger.info(f"Admin: import {len(codes)} kodow do wariantu {variant_id}")
        added = self.inventory.add_stock(variant_id, codes, expiration_date, activation_date)
        return {
            "variant_id": variant_id,
            "added": len(added),
            "status": self.inventory.status(variant_id),
        }

    def inventory_status(self, variant_id: int) -> Dict[str, Any]:
        return self.inventory.status(variant_id)

    def inventory_summary(self) -> Dict[str, Any]:
        return self.inventory.summary()

    def list_codes(self, **filters) -> Dict[str, Any]:
        return self.inventory.list_codes(**filters)

    def delete_code(self, code_id: int) -> None:
        logger.info(f"Admin: usuwanie kodu {code_id}")
        self.inventory.delete_code(code_id)

    def flag_code(self, code_id: int) -> Dict[str, Any]:
        # bledny / zduplikowany kod u dostawcy
        self.inventory.get_code(code_id)
        self.inventory.mark_error([code_id])
        return self.inventory.get_code(code_id)

    # zamowienia
    def list_orders(self, **filters) -> Dict[str, Any]:
        return self.orders.list_all(**filters)

    def get_order(self, order_id: int) -> Dict[str, Any]:
        return self.orders.get_order_detail(order_id)

    def change_status(self, order_id: int, status) -> Dict[str, Any]:
        logger.info(f"Admin: zmiana statusu zamowienia {order_id} na {status}")
        return self.orders.change_status(order_id, status)

    def refund(self, order_id: int) -> Dict[str, Any]:
        logger.info(f"Admin: zwrot zamowienia {order_id}")
        return self.orders.refund(order_id)

    def revenue(self, date_from=None, date_to=None) -> Dict[str, Any]:
        return self.orders.revenue(date_from, date_to)
