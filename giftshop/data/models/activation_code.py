from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from giftshop.data.database import Base
from giftshop.domain.statuses import CodeStatus


class ActivationCodeModel(Base):
    __tablename__ = "activation_codes"

    id = Column(Integer, primary_key=True)
    serial = Column(String(32), nullable=False, unique=True)
    code = Column(String(255), nullable=False, unique=True)
    expiration_date = Column(Date, nullable=False)
    activation_date = Column(Date, nullable=False)

    status = Column(String(20), nullable=False, default=CodeStatus.UNUSED.value)
    variant_id = Column(Integer, ForeignKey("variants.id"), nullable=False)
    # referencja do pozycji zamowienia, kod nadal nalezy do magazynu
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=True, index=True)
    reserved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    variant = relationship("VariantModel")
    order_item = relationship("OrderItemModel", back_populates="codes")

    __table_args__ = (Index("ix_codes_variant_status", "variant_id", "status"),)
