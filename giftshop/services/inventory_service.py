# giftshop/services/inventory_service.py
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftshop.data.models.activation_code import ActivationCodeModel
from giftshop.domain.errors import (
    CodeInUseError,
    ConcurrencyConflictError,
    DuplicateCodeError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from giftshop.domain.statuses import CODES_IN_USE, CodeStatus
from giftshop.repos.catalog_repo import CatalogRepo
from giftshop.repos.inventory_repo import InventoryRepo
from giftshop.utils.dates import normalize_date
from giftshop.utils.logging import get_logger
from giftshop.utils.retry import allocation_retry
from giftshop.utils.settings import LOW_STOCK_THRESHOLD

logger = get_logger(__name__)


def code_to_dict(c: ActivationCodeModel, product_name: str | None = None) -> Dict[str, Any]:
    data = {
        "id": c.id,
        "serial": c.serial,
        "code": c.code,
        "expiration_date": c.expiration_date,
        "activation_date": c.activation_date,
        "status": c.status,
        "variant_id": c.variant_id,
    }
    if product_name is not None:
        data["product_name"] = product_name
    return data


def _stock_flags(in_stock: int, threshold: int) -> Dict[str, bool]:
    return {
        "low_stock": 0 < in_stock < threshold,
        "out_of_stock": in_stock == 0,
    }


def _new_serial() -> str:
    return uuid.uuid4().hex[:16].upper()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryService:
    """
    Magazyn kodow aktywacyjnych pogrupowanych po wariantach.

    allocate / confirm / release tylko przesuwaja kody miedzy UNUSED,
    PENDING_PAYMENT i USED; liczba kodow wariantu zmienia sie wylacznie
    przez add_stock, delete_code i mark_error.
    """

    def __init__(self, db: Session, low_stock_threshold: int = LOW_STOCK_THRESHOLD):
        self.repo = InventoryRepo(db)
        self.catalog = CatalogRepo(db)
        self.low_stock_threshold = low_stock_threshold

    #commands
    def add_stock(self, variant_id: int, codes: Iterable[str], expiration_date, activation_date) -> List[Dict[str, Any]]:
        """Wszystko albo nic: duplikat w paczce lub w bazie odrzuca cala paczke."""
        variant = self.catalog.get_variant(variant_id)
        if not variant:
            raise NotFoundError("Wariant", variant_id)

        batch = [c.strip() for c in codes if c and c.strip()]
        if not batch:
            raise ValidationError("Brak kodow do dodania")

        expires = normalize_date(expiration_date)
        activates = normalize_date(activation_date)
        if expires < activates:
            raise ValidationError("Data waznosci nie moze byc wczesniejsza niz data aktywacji")

        in_batch = [code for code, n in Counter(batch).items() if n > 1]
        if in_batch:
            logger.warning(f"Odrzucono paczke dla wariantu {variant_id}, duplikaty w paczce: {in_batch}")
            raise DuplicateCodeError(in_batch)

        existing = self.repo.existing_codes(batch)
        if existing:
            logger.warning(f"Odrzucono paczke dla wariantu {variant_id}, kody juz istnieja: {sorted(existing)}")
            raise DuplicateCodeError(existing)

        models = [
            ActivationCodeModel(
                serial=_new_serial(),
                code=code,
                expiration_date=expires,
                activation_date=activates,
                status=CodeStatus.UNUSED.value,
                variant_id=variant_id,
            )
            for code in batch
        ]

        try:
            self.repo.add_codes(models)
            self.repo.commit()
        except IntegrityError:
            # rownolegly import wstawil ten sam kod
            self.repo.rollback()
            logger.warning(f"Konflikt unikalnosci przy imporcie dla wariantu {variant_id}")
            raise DuplicateCodeError(self.repo.existing_codes(batch) or batch) from None

        logger.info(f"Dodano {len(models)} kodow do wariantu {variant_id}")
        return [code_to_dict(m) for m in models]

    def allocate(self, variant_id: int, quantity: int) -> List[int]:
        """
        Rezerwuje `quantity` najstarszych kodow UNUSED (-> PENDING_PAYMENT).
        Zadnej czesciowej alokacji: albo wszystkie, albo InsufficientStockError.
        """
        if quantity < 1:
            raise ValidationError("Ilosc musi byc wieksza niz 0")
        if not self.catalog.get_variant(variant_id):
            raise NotFoundError("Wariant", variant_id)

        return self._allocate(variant_id, quantity)

    @allocation_retry(ConcurrencyConflictError)
    def _allocate(self, variant_id: int, quantity: int) -> List[int]:
        ids = self.repo.select_unused_ids(variant_id, quantity)
        if len(ids) < quantity:
            # SKIP LOCKED pomija kody trzymane przez inna transakcje, ktora moze sie jeszcze wycofac
            available = self.repo.count_unused(variant_id)
            self.repo.rollback()
            if available >= quantity:
                logger.info(f"Kody wariantu {variant_id} zablokowane przez inna alokacje, ponawiam")
                raise ConcurrencyConflictError(f"Kody wariantu {variant_id} sa chwilowo zablokowane")
            logger.warning(
                f"Brak kodow dla wariantu {variant_id}: zadano {quantity}, dostepne {available}"
            )
            raise InsufficientStockError(variant_id, quantity, available)

        rowcount = self.repo.move_codes(
            ids, [CodeStatus.UNUSED], CodeStatus.PENDING_PAYMENT, reserved_at=_utcnow()
        )
        if rowcount != len(ids):
            # ktos zabral czesc kodow miedzy select a update
            self.repo.rollback()
            logger.info(f"Konflikt alokacji dla wariantu {variant_id}, ponawiam")
            raise ConcurrencyConflictError(f"Konflikt alokacji kodow wariantu {variant_id}")

        self.repo.commit()
        logger.info(f"Zarezerwowano {quantity} kodow wariantu {variant_id}: {ids}")
        return ids

    def _move(self, code_ids, from_status: CodeStatus, to_status: CodeStatus, commit: bool, **values) -> int:
        ids = sorted(set(code_ids))
        if not ids:
            return 0

        rowcount = self.repo.move_codes(ids, [from_status], to_status, **values)
        if rowcount != len(ids):
            self.repo.rollback()
            logger.warning(f"Odrzucono przejscie {from_status.value} -> {to_status.value} dla kodow {ids}")
            raise InvalidTransitionError(from_status, to_status, entity="Kod aktywacyjny")

        if commit:
            self.repo.commit()
        logger.info(f"Kody {ids}: {from_status.value} -> {to_status.value}")
        return rowcount

    def confirm(self, code_ids, commit: bool = True) -> int:
        return self._move(code_ids, CodeStatus.PENDING_PAYMENT, CodeStatus.USED, commit)

    def release(self, code_ids, commit: bool = True) -> int:
        # kod wraca do puli, zrywamy referencje do pozycji zamowienia
        return self._move(
            code_ids, CodeStatus.PENDING_PAYMENT, CodeStatus.UNUSED, commit, order_item_id=None, reserved_at=None
        )

    def release_reserved(self, code_ids, commit: bool = True) -> int:
        """
        Zwalnia te z podanych kodow, ktore nadal sa PENDING_PAYMENT. Pozostale
        (np. oflagowane przez admina jako ERROR) sa pomijane, nie blokuja reszty.
        """
        ids = sorted(set(code_ids))
        if not ids:
            return 0
        rowcount = self.repo.move_codes(
            ids, [CodeStatus.PENDING_PAYMENT], CodeStatus.UNUSED, order_item_id=None, reserved_at=None
        )
        if commit:
            self.repo.commit()
        if rowcount != len(ids):
            logger.warning(f"Zwolniono {rowcount} z {len(ids)} kodow {ids}, reszta nie byla zarezerwowana")
        else:
            logger.info(f"Kody {ids} zwolnione")
        return rowcount

    def release_orphaned(self, cutoff: datetime) -> List[int]:
        # rezerwacje bez zamowienia, np. po awarii procesu w trakcie checkoutu
        ids = self.repo.orphaned_reservations(cutoff)
        if ids:
            self.release_reserved(ids)
            logger.warning(f"Zwolniono osierocone rezerwacje: {ids}")
        return ids

    def bind(self, code_ids, order_item_id: int, commit: bool = True) -> int:
        return self._move(
            code_ids, CodeStatus.PENDING_PAYMENT, CodeStatus.PENDING_PAYMENT, commit, order_item_id=order_item_id
        )

    def mark_error(self, code_ids, commit: bool = True) -> int:
        ids = sorted(set(code_ids))
        if not ids:
            return 0
        from_statuses = [s for s in CodeStatus if s != CodeStatus.ERROR]
        rowcount = self.repo.move_codes(ids, from_statuses, CodeStatus.ERROR)
        if commit:
            self.repo.commit()
        logger.warning(f"Kody {ids} oznaczone jako ERROR")
        return rowcount

    def delete_code(self, code_id: int) -> None:
        code = self.repo.get_code(code_id)
        if not code:
            raise NotFoundError("Kod", code_id)
        if CodeStatus(code.status) in CODES_IN_USE:
            raise CodeInUseError(code_id, code.status)

        variant_id = code.variant_id
        deletable = [s for s in CodeStatus if s not in CODES_IN_USE]
        if self.repo.delete_code(code_id, deletable) == 0:
            # stan zmienil sie miedzy odczytem a DELETE
            self.repo.rollback()
            code = self.repo.get_code(code_id)
            if not code:
                raise NotFoundError("Kod", code_id)
            raise CodeInUseError(code_id, code.status)
        self.repo.commit()
        logger.info(f"Usunieto kod {code_id} (wariant {variant_id})")

    #query
    def get_code(self, code_id: int) -> Dict[str, Any]:
        code = self.repo.get_code(code_id)
        if not code:
            raise NotFoundError("Kod", code_id)
        return code_to_dict(code)

    def status(self, variant_id: int) -> Dict[str, Any]:
        if not self.catalog.get_variant(variant_id):
            raise NotFoundError("Wariant", variant_id)

        counts = self.repo.count_by_status(variant_id)
        in_stock = counts[CodeStatus.UNUSED.value]
        return {
            "variant_id": variant_id,
            "counts": counts,
            "quantity_in_stock": in_stock,
            **_stock_flags(in_stock, self.low_stock_threshold),
        }

    def summary(self) -> Dict[str, Any]:
        variants: Dict[int, Dict[str, Any]] = {}
        for variant_id, price, value, currency, product_name, status, n in self.repo.stock_rows():
            row = variants.setdefault(
                variant_id,
                {
                    "variant_id": variant_id,
                    "product_name": product_name,
                    "price": price,
                    "value": value,
                    "currency": currency,
                    "counts": {s.value: 0 for s in CodeStatus},
                },
            )
            if status is not None:
                row["counts"][status] = n

        rows = []
        for row in variants.values():
            in_stock = row["counts"][CodeStatus.UNUSED.value]
            row["quantity_in_stock"] = in_stock
            row.update(_stock_flags(in_stock, self.low_stock_threshold))
            rows.append(row)

        return {
            "variants": rows,
            "total_variants": len(rows),
            "low_stock_count": sum(1 for r in rows if r["low_stock"]),
            "out_of_stock_count": sum(1 for r in rows if r["out_of_stock"]),
            "total_in_stock": sum(r["quantity_in_stock"] for r in rows),
        }

    def list_codes(self, variant_id=None, status=None, code_keyword=None, page: int = 0, size: int = 20) -> Dict[str, Any]:
        filters = {"variant_id": variant_id, "status": status, "code_keyword": code_keyword}
        rows = self.repo.list_codes(page * size, size, **filters)
        return {
            "content": [code_to_dict(code, product_name) for code, product_name in rows],
            "total_elements": self.repo.count_codes(**filters),
            "page": page,
            "size": size,
        }
