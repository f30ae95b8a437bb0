from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from giftshop.data.database import Base


class VariantModel(Base):
    __tablename__ = "variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    value = Column(Numeric(12, 2), nullable=False)  # nominal karty
    price = Column(Numeric(12, 2), nullable=False)  # cena do zaplaty
    currency = Column(String(3), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("ProductModel", back_populates="variants")
