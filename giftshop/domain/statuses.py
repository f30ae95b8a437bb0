# giftshop/domain/statuses.py
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class CodeStatus(str, Enum):
    UNUSED = "UNUSED"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    USED = "USED"
    ERROR = "ERROR"


class TransactionStatus(str, Enum):
    IN_PROCESS = "IN_PROCESS"
    SUCCESS = "SUCCESS"
    CANCELLED = "CANCELLED"


class Actor(str, Enum):
    CUSTOMER = "customer"
    SYSTEM = "system"
    ADMIN = "admin"


# przejscia dostepne dla klienta i systemu (callback platnosci, expire)
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.COMPLETED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.FAILED: set(),
    OrderStatus.REFUNDED: set(),
}

# dodatkowe przejscia tylko dla admina, kazde z okreslona kompensacja
# (powrot do PENDING = ponowna alokacja kodow)
ADMIN_ONLY_TRANSITIONS = {
    OrderStatus.CANCELLED: {OrderStatus.PENDING},
    OrderStatus.FAILED: {OrderStatus.PENDING},
}

CODE_TRANSITIONS = {
    CodeStatus.UNUSED: {CodeStatus.PENDING_PAYMENT, CodeStatus.ERROR},
    CodeStatus.PENDING_PAYMENT: {CodeStatus.USED, CodeStatus.UNUSED, CodeStatus.ERROR},
    CodeStatus.USED: {CodeStatus.ERROR},
    CodeStatus.ERROR: set(),
}

# kody w tych stanach sa powiazane z zywym albo zrealizowanym zamowieniem
CODES_IN_USE = frozenset({CodeStatus.PENDING_PAYMENT, CodeStatus.USED})

# zamowienia, w ktorych kody zostaly juz ujawnione klientowi
CODES_REVEALED = frozenset({OrderStatus.COMPLETED, OrderStatus.REFUNDED})


def can_transition(current: OrderStatus, target: OrderStatus, admin: bool = False) -> bool:
    current, target = OrderStatus(current), OrderStatus(target)
    if target in ORDER_TRANSITIONS[current]:
        return True
    return admin and target in ADMIN_ONLY_TRANSITIONS.get(current, set())


def can_move_code(current: CodeStatus, target: CodeStatus) -> bool:
    return CodeStatus(target) in CODE_TRANSITIONS[CodeStatus(current)]
