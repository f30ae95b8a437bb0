# giftshop/services/catalog_service.py
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from sqlalchemy.orm import Session

from giftshop.data.models.product import ProductModel
from giftshop.data.models.variant import VariantModel
from giftshop.domain.errors import NotFoundError, ValidationError
from giftshop.repos.catalog_repo import CatalogRepo
from giftshop.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCT_FIELDS = ("name", "description", "picture_url", "branch_name")


def _money(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field}: niepoprawna kwota {value!r}") from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} musi byc wieksze niz 0")
    return amount.quantize(Decimal("0.01"))


def _currency(value) -> str:
    code = str(value or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Niepoprawny kod waluty: {value!r}")
    return code


def variant_to_dict(v: VariantModel) -> Dict[str, Any]:
    return {
        "id": v.id,
        "product_id": v.product_id,
        "value": v.value,
        "price": v.price,
        "currency": v.currency,
        "is_active": v.is_active,
    }


def product_to_dict(p: ProductModel, active_variants_only: bool = True) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "picture_url": p.picture_url,
        "branch_name": p.branch_name,
        "is_active": p.is_active,
        "variants": [
            variant_to_dict(v) for v in p.variants if v.is_active or not active_variants_only
        ],
    }


class CatalogService:
    """
    Katalog produktow i wariantow (nominalow).
    Odczyt dla koszyka/zamowien, zapis tylko przez admina.
    Ceny w pozycjach zamowien to snapshoty, edycja wariantu ich nie zmienia.
    """

    def __init__(self, db: Session):
        self.repo = CatalogRepo(db)

    #query
    def get_product(self, product_id: int, include_inactive: bool = False) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)
        if not product or (not product.is_active and not include_inactive):
            raise NotFoundError("Produkt", product_id)
        return product_to_dict(product, active_variants_only=not include_inactive)

    def list_products(self, page: int = 0, size: int = 20, include_inactive: bool = False) -> Dict[str, Any]:
        active_only = not include_inactive
        products = self.repo.list_products(page * size, size, active_only=active_only)
        total = self.repo.count_products(active_only=active_only)
        return {
            "content": [product_to_dict(p, active_variants_only=active_only) for p in products],
            "total_elements": total,
            "page": page,
            "size": size,
        }

    def get_variant_model(self, variant_id: int) -> VariantModel:
        variant = self.repo.get_variant(variant_id)
        if not variant:
            raise NotFoundError("Wariant", variant_id)
        return variant

    def get_live_variant(self, variant_id: int) -> VariantModel:
        variant = self.get_variant_model(variant_id)
        if not variant.is_active or not variant.product.is_active:
            raise NotFoundError("Wariant", variant_id)
        return variant

    def get_variant(self, variant_id: int) -> Dict[str, Any]:
        v = self.get_variant_model(variant_id)
        data = variant_to_dict(v)
        data["product_name"] = v.product.name
        return data

    #commands
    def create_product(self, **fields) -> Dict[str, Any]:
        name = (fields.get("name") or "").strip()
        if not name:
            raise ValidationError("Nazwa produktu jest wymagana")

        product = ProductModel(
            name=name,
            description=fields.get("description") or "",
            picture_url=fields.get("picture_url") or "",
            branch_name=fields.get("branch_name") or "",
        )
        self.repo.add_product(product)
        self.repo.commit()

        logger.info(f"Utworzono produkt {product.id} ({name})")
        return self.get_product(product.id)

    def update_product(self, product_id: int, **fields) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Produkt", product_id)

        for field in PRODUCT_FIELDS:
            if fields.get(field) is not None:
                setattr(product, field, fields[field])
        if not product.name.strip():
            self.repo.rollback()
            raise ValidationError("Nazwa produktu jest wymagana")

        self.repo.commit()
        logger.info(f"Zaktualizowano produkt {product_id}")
        return self.get_product(product_id, include_inactive=True)

    def delete_product(self, product_id: int) -> None:
        # soft delete, kody i historia zamowien zostaja
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Produkt", product_id)

        product.is_active = False
        for variant in product.variants:
            variant.is_active = False
        self.repo.commit()
        logger.info(f"Produkt {product_id} dezaktywowany")

    def add_variant(self, product_id: int, value, price, currency) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Produkt", product_id)

        variant = VariantModel(
            product_id=product_id,
            value=_money(value, "value"),
            price=_money(price, "price"),
            currency=_currency(currency),
        )
        self.repo.add_variant(variant)
        self.repo.commit()

        logger.info(f"Dodano wariant {variant.id} do produktu {product_id}")
        return self.get_variant(variant.id)

    def update_variant(self, variant_id: int, value=None, price=None, currency=None) -> Dict[str, Any]:
        variant = self.get_variant_model(variant_id)

        changes = {}
        if value is not None:
            changes["value"] = _money(value, "value")
        if price is not None:
            changes["price"] = _money(price, "price")
        if currency is not None:
            changes["currency"] = _currency(currency)

        for field, new_value in changes.items():
            setattr(variant, field, new_value)
        self.repo.commit()
        logger.info(f"Zaktualizowano wariant {variant_id}")
        return self.get_variant(variant_id)

    def delete_variant(self, variant_id: int) -> None:
        variant = self.get_variant_model(variant_id)
        variant.is_active = False
        self.repo.commit()
        logger.info(f"Wariant {variant_id} dezaktywowany")
