from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.orm import relationship

from giftshop.data.database import Base
from giftshop.domain.statuses import OrderStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    payment_method = Column(String(20), nullable=False)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    total_amount = Column(Numeric(12, 2), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
    transaction = relationship(
        "TransactionModel",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
    )
    events = relationship(
        "OrderEventModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderEventModel.id",
    )
