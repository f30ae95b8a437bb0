from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from giftshop.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("variants.id"), nullable=False)

    # snapshot z katalogu w momencie checkoutu, nie zmienia sie przy edycji wariantu
    product_name = Column(String(200), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    recipient_email = Column(String(255), nullable=True)
    recipient_name = Column(String(200), nullable=True)
    message = Column(Text, nullable=True)

    order = relationship("OrderModel", back_populates="items")
    codes = relationship(
        "ActivationCodeModel",
        back_populates="order_item",
        order_by="ActivationCodeModel.id",
    )
