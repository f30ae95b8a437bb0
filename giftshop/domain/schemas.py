# giftshop/domain/schemas.py
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from giftshop.domain.statuses import CodeStatus, OrderStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------- katalog ----------

class VariantIn(BaseModel):
    """Schema dla dodawania wariantu (nominalu)."""

    value: Decimal = Field(..., gt=0, description="Nominal karty")
    price: Decimal = Field(..., gt=0, description="Cena do zaplaty")
    currency: str = Field(..., min_length=3, max_length=3)


class VariantUpdate(BaseModel):
    value: Optional[Decimal] = Field(None, gt=0)
    price: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class VariantOut(BaseModel):
    id: int
    product_id: int
    value: Decimal
    price: Decimal
    currency: str
    is_active: bool
    product_name: Optional[str] = None


class ProductIn(BaseModel):
    """Schema dla tworzenia produktu."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    picture_url: str = ""
    branch_name: str = ""


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    picture_url: Optional[str] = None
    branch_name: Optional[str] = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: str
    picture_url: str
    branch_name: str
    is_active: bool
    variants: List[VariantOut]


class ProductPage(BaseModel):
    content: List[ProductOut]
    total_elements: int
    page: int
    size: int


# ---------- koszyk ----------

class ItemIn(BaseModel):
    """Schema dla dodawania wariantu do koszyka."""

    variant_id: int = Field(..., gt=0, description="ID wariantu (musi byc > 0)")
    quantity: int = Field(1, gt=0, description="Ilosc (musi byc > 0)")


class QuantityIn(BaseModel):
    # ilosc < 1 to no-op, nie blad walidacji
    quantity: int


class RecipientIn(BaseModel):
    recipient_email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    recipient_name: Optional[str] = Field(None, max_length=200)
    message: Optional[str] = Field(None, max_length=1000)


class CartItemOut(BaseModel):
    id: str
    product_id: int
    variant_id: int
    product_name: str
    branch_name: str
    picture_url: str
    price: Decimal
    value: Decimal
    currency: str
    quantity: int
    subtotal: Decimal
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    items: List[CartItemOut]
    total_items: int
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


# ---------- zamowienia ----------

class OrderCreate(BaseModel):
    """Schema dla skladania zamowienia z koszyka."""

    payment_method: str = Field(..., min_length=1, max_length=20)


class OrderCreated(BaseModel):
    order_id: int
    payment_url: str
    status: OrderStatus
    total_amount: Decimal


class CodeOut(BaseModel):
    id: int
    serial: str
    code: str
    expiration_date: date
    activation_date: date
    status: CodeStatus
    variant_id: int
    product_name: Optional[str] = None


class OrderItemOut(BaseModel):
    id: int
    variant_id: int
    product_name: str
    value: Decimal
    currency: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    message: Optional[str] = None
    codes: List[CodeOut] = []


class TransactionOut(BaseModel):
    id: int
    payment_code: Optional[str] = None
    amount: Decimal
    status: str
    created_at: datetime
    paid_at: Optional[datetime] = None


class OrderEventOut(BaseModel):
    from_status: Optional[str] = None
    to_status: str
    actor: str
    note: Optional[str] = None
    created_at: datetime


class OrderOut(BaseModel):
    """Schema dla zamowienia (response)."""

    id: int
    user_id: int
    payment_method: str
    status: OrderStatus
    total_amount: Decimal
    created_at: datetime
    updated_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    items: List[OrderItemOut]
    transaction: Optional[TransactionOut] = None
    events: Optional[List[OrderEventOut]] = None


class OrderPage(BaseModel):
    content: List[OrderOut]
    total_elements: int
    page: int
    size: int


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentCallback(BaseModel):
    """Callback bramki platnosci, resultCode == 0 oznacza sukces."""

    orderId: int
    resultCode: int
    transId: str = ""
    signature: str


# ---------- magazyn ----------

class StockImport(BaseModel):
    """Import kodow: jeden kod na linie."""

    variant_id: int = Field(..., gt=0)
    activation_codes: str = Field(..., min_length=1)
    expiration_date: str
    activation_date: str


class StockImportOut(BaseModel):
    variant_id: int
    added: int
    status: "VariantStockOut"


class VariantStockOut(BaseModel):
    variant_id: int
    counts: Dict[str, int]
    quantity_in_stock: int
    low_stock: bool
    out_of_stock: bool
    product_name: Optional[str] = None
    price: Optional[Decimal] = None
    value: Optional[Decimal] = None
    currency: Optional[str] = None


class InventorySummaryOut(BaseModel):
    variants: List[VariantStockOut]
    total_variants: int
    low_stock_count: int
    out_of_stock_count: int
    total_in_stock: int


class CodePage(BaseModel):
    content: List[CodeOut]
    total_elements: int
    page: int
    size: int


class RevenueOut(BaseModel):
    revenue: Decimal
    orders: int
    by_day: Dict[str, Decimal]


StockImportOut.model_rebuild()
