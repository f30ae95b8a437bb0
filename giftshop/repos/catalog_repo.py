# giftshop/repos/catalog_repo.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from giftshop.data.models.product import ProductModel
from giftshop.data.models.variant import VariantModel


class CatalogRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def list_products(self, offset: int, limit: int, active_only: bool = True) -> list[ProductModel]:
        stmt = select(ProductModel).options(selectinload(ProductModel.variants))
        if active_only:
            stmt = stmt.where(ProductModel.is_active.is_(True))
        stmt = stmt.order_by(ProductModel.id).offset(offset).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count_products(self, active_only: bool = True) -> int:
        stmt = select(func.count(ProductModel.id))
        if active_only:
            stmt = stmt.where(ProductModel.is_active.is_(True))
        return self.db.execute(stmt).scalar_one()

    def add_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.flush()
        return product

    def get_variant(self, variant_id: int) -> VariantModel | None:
        return self.db.get(VariantModel, variant_id)

    def add_variant(self, variant: VariantModel) -> VariantModel:
        self.db.add(variant)
        self.db.flush()
        return variant

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
