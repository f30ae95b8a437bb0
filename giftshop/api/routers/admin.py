# giftshop/api/routers/admin.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from giftshop.api.deps import get_admin_service, require_admin
from giftshop.domain.schemas import (
    CodeOut,
    CodePage,
    InventorySummaryOut,
    OrderOut,
    OrderPage,
    ProductIn,
    ProductOut,
    ProductUpdate,
    RevenueOut,
    StatusUpdate,
    StockImport,
    StockImportOut,
    VariantIn,
    VariantOut,
    VariantStockOut,
    VariantUpdate,
)
from giftshop.domain.statuses import CodeStatus, OrderStatus
from giftshop.services.admin_service import AdminService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------- produkty / warianty ----------

@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(payload: ProductIn, svc: AdminService = Depends(get_admin_service)):
    return svc.create_product(**payload.model_dump())


@router.put("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: int, payload: ProductUpdate, svc: AdminService = Depends(get_admin_service)):
    return svc.update_product(product_id, **payload.model_dump(exclude_unset=True))


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, svc: AdminService = Depends(get_admin_service)):
    svc.delete_product(product_id)
    return Response(status_code=204)


@router.post("/products/{product_id}/variants", response_model=VariantOut, status_code=201)
def add_variant(product_id: int, payload: VariantIn, svc: AdminService = Depends(get_admin_service)):
    return svc.add_variant(product_id, payload.value, payload.price, payload.currency)


@router.put("/variants/{variant_id}", response_model=VariantOut)
def update_variant(variant_id: int, payload: VariantUpdate, svc: AdminService = Depends(get_admin_service)):
    return svc.update_variant(variant_id, **payload.model_dump(exclude_unset=True))


@router.delete("/variants/{variant_id}", status_code=204)
def delete_variant(variant_id: int, svc: AdminService = Depends(get_admin_service)):
    svc.delete_variant(variant_id)
    return Response(status_code=204)


# ---------- magazyn ----------

@router.post("/inventory/stock", response_model=StockImportOut, status_code=201)
def import_stock(payload: StockImport, svc: AdminService = Depends(get_admin_service)):
    return svc.import_stock(
        payload.variant_id,
        payload.activation_codes,
        payload.expiration_date,
        payload.activation_date,
    )


@router.get("/inventory/status", response_model=InventorySummaryOut)
def inventory_summary(svc: AdminService = Depends(get_admin_service)):
    return svc.inventory_summary()


@router.get("/inventory/status/{variant_id}", response_model=VariantStockOut)
def inventory_status(variant_id: int, svc: AdminService = Depends(get_admin_service)):
    return svc.inventory_status(variant_id)


@router.get("/inventory/cards", response_model=CodePage)
def list_cards(
    variant_id: Optional[int] = None,
    status: Optional[CodeStatus] = None,
    code_keyword: Optional[str] = None,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=200),
    svc: AdminService = Depends(get_admin_service),
):
    return svc.list_codes(variant_id=variant_id, status=status, code_keyword=code_keyword, page=page, size=size)


@router.delete("/inventory/cards/{code_id}", status_code=204)
def delete_card(code_id: int, svc: AdminService = Depends(get_admin_service)):
    svc.delete_code(code_id)
    return Response(status_code=204)


@router.post("/inventory/cards/{code_id}/error", response_model=CodeOut)
def flag_card(code_id: int, svc: AdminService = Depends(get_admin_service)):
    return svc.flag_code(code_id)


# ---------- zamowienia ----------

@router.get("/orders", response_model=OrderPage)
def list_orders(
    status: Optional[OrderStatus] = None,
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    user_id: Optional[int] = None,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=200),
    svc: AdminService = Depends(get_admin_service),
):
    return svc.list_orders(
        status=status, date_from=date_from, date_to=date_to, user_id=user_id, page=page, size=size
    )


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, svc: AdminService = Depends(get_admin_service)):
    return svc.get_order(order_id)


@router.put("/orders/{order_id}/status", response_model=OrderOut)
def change_status(order_id: int, payload: StatusUpdate, svc: AdminService = Depends(get_admin_service)):
    return svc.change_status(order_id, payload.status)


@router.post("/orders/{order_id}/refund", response_model=OrderOut)
def refund_order(order_id: int, svc: AdminService = Depends(get_admin_service)):
    return svc.refund(order_id)


@router.get("/dashboard/revenue", response_model=RevenueOut)
def revenue(
    date_from: Optional[date] = Query(None, alias="fromDate"),
    date_to: Optional[date] = Query(None, alias="toDate"),
    svc: AdminService = Depends(get_admin_service),
):
    return svc.revenue(date_from, date_to)
