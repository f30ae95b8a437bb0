#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from giftshop.data.models.product import ProductModel
from giftshop.data.models.variant import VariantModel
from giftshop.data.models.activation_code import ActivationCodeModel
from giftshop.data.models.order import OrderModel
from giftshop.data.models.order_item import OrderItemModel
from giftshop.data.models.transaction import TransactionModel
from giftshop.data.models.order_event import OrderEventModel

__all__ = [
    "ProductModel",
    "VariantModel",
    "ActivationCodeModel",
    "OrderModel",
    "OrderItemModel",
    "TransactionModel",
    "OrderEventModel",
]
