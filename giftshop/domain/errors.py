# giftshop/domain/errors.py
"""
Typowane bledy domeny. Kazdy niesie stabilny `code` i status HTTP,
handler w giftshop.api zamienia je na odpowiedz JSON.
"""


class GiftShopError(Exception):
    code = "GIFTSHOP_ERROR"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(GiftShopError, ValueError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(GiftShopError, LookupError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity} nie istnieje")
        else:
            super().__init__(f"{entity} {entity_id} nie istnieje")


class AccessDeniedError(GiftShopError, PermissionError):
    code = "ACCESS_DENIED"
    status_code = 403


class InsufficientStockError(GiftShopError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, variant_id: int, requested: int, available: int):
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Brak wystarczajacej ilosci kodow dla wariantu {variant_id}: "
            f"zadano {requested}, dostepne {available}"
        )


class DuplicateCodeError(GiftShopError):
    code = "DUPLICATE_CODE"
    status_code = 409

    def __init__(self, codes):
        self.codes = sorted(set(codes))
        super().__init__(f"Kody juz istnieja: {', '.join(self.codes)}")


class InvalidTransitionError(GiftShopError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current, target, entity: str = "Zamowienie"):
        self.current = getattr(current, "value", current)
        self.target = getattr(target, "value", target)
        super().__init__(
            f"{entity}: niedozwolone przejscie {self.current} -> {self.target}"
        )


class ConcurrencyConflictError(GiftShopError):
    code = "CONCURRENCY_CONFLICT"
    status_code = 409


class CodeInUseError(GiftShopError):
    code = "CODE_IN_USE"
    status_code = 409

    def __init__(self, code_id: int, status):
        self.code_id = code_id
        self.status = getattr(status, "value", status)
        super().__init__(f"Kod {code_id} jest w uzyciu (status {self.status})")


class PaymentGatewayError(GiftShopError):
    code = "PAYMENT_GATEWAY_ERROR"
    status_code = 502
