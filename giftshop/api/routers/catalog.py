# giftshop/api/routers/catalog.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from giftshop.data.database import get_db
from giftshop.domain.schemas import ProductOut, ProductPage, VariantOut
from giftshop.services.catalog_service import CatalogService

router = APIRouter(tags=["catalog"])


@router.get("/products", response_model=ProductPage)
def list_products(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return CatalogService(db).list_products(page, size)


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return CatalogService(db).get_product(product_id)


@router.get("/variants/{variant_id}", response_model=VariantOut)
def get_variant(variant_id: int, db: Session = Depends(get_db)):
    return CatalogService(db).get_variant(variant_id)
