# giftshop/repos/inventory_repo.py
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from giftshop.data.models.activation_code import ActivationCodeModel
from giftshop.data.models.product import ProductModel
from giftshop.data.models.variant import VariantModel
from giftshop.domain.statuses import CodeStatus


class InventoryRepo:
    def __init__(self, db: Session):
        self.db = db

    def existing_codes(self, codes) -> set[str]:
        codes = list(codes)
        if not codes:
            return set()
        rows = self.db.execute(
            select(ActivationCodeModel.code).where(ActivationCodeModel.code.in_(codes))
        ).scalars().all()
        return set(rows)

    def add_codes(self, models: list[ActivationCodeModel]):
        self.db.add_all(models)
        self.db.flush()

    def get_code(self, code_id: int) -> ActivationCodeModel | None:
        return self.db.get(ActivationCodeModel, code_id)

    def delete_code(self, code_id: int, statuses) -> int:
        # warunkowo, kod zarezerwowany w miedzyczasie nie zostanie usuniety
        res = self.db.execute(
            delete(ActivationCodeModel)
            .where(
                ActivationCodeModel.id == code_id,
                ActivationCodeModel.status.in_([CodeStatus(s).value for s in statuses]),
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def select_unused_ids(self, variant_id: int, limit: int) -> list[int]:
        # najstarsze najpierw, w postgresie zablokowane wiersze sa pomijane
        stmt = (
            select(ActivationCodeModel.id)
            .where(
                ActivationCodeModel.variant_id == variant_id,
                ActivationCodeModel.status == CodeStatus.UNUSED.value,
            )
            .order_by(ActivationCodeModel.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_unused(self, variant_id: int) -> int:
        # bez blokad, liczy tez wiersze zablokowane przez inne transakcje
        return self.db.execute(
            select(func.count(ActivationCodeModel.id)).where(
                ActivationCodeModel.variant_id == variant_id,
                ActivationCodeModel.status == CodeStatus.UNUSED.value,
            )
        ).scalar_one()

    def orphaned_reservations(self, cutoff) -> list[int]:
        """Kody PENDING_PAYMENT bez pozycji zamowienia, zarezerwowane przed `cutoff`."""
        return list(
            self.db.execute(
                select(ActivationCodeModel.id)
                .where(
                    ActivationCodeModel.status == CodeStatus.PENDING_PAYMENT.value,
                    ActivationCodeModel.order_item_id.is_(None),
                    ActivationCodeModel.reserved_at < cutoff,
                )
                .order_by(ActivationCodeModel.id)
            ).scalars().all()
        )

    def move_codes(self, code_ids, from_statuses, to_status: CodeStatus, **values) -> int:
        """
        Warunkowy UPDATE (compare-and-swap): zmienia tylko kody, ktore nadal
        sa w jednym z `from_statuses`. Zwraca liczbe zmienionych wierszy.
        """
        ids = list(code_ids)
        if not ids:
            return 0
        res = self.db.execute(
            update(ActivationCodeModel)
            .where(
                ActivationCodeModel.id.in_(ids),
                ActivationCodeModel.status.in_([CodeStatus(s).value for s in from_statuses]),
            )
            .values(status=CodeStatus(to_status).value, **values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def count_by_status(self, variant_id: int) -> dict[str, int]:
        rows = self.db.execute(
            select(ActivationCodeModel.status, func.count(ActivationCodeModel.id))
            .where(ActivationCodeModel.variant_id == variant_id)
            .group_by(ActivationCodeModel.status)
        ).all()
        counts = {s.value: 0 for s in CodeStatus}
        counts.update({status: n for status, n in rows})
        return counts

    def stock_rows(self):
        """(variant, product_name, status, count) dla aktywnych wariantow."""
        return self.db.execute(
            select(
                VariantModel.id,
                VariantModel.price,
                VariantModel.value,
                VariantModel.currency,
                ProductModel.name,
                ActivationCodeModel.status,
                func.count(ActivationCodeModel.id),
            )
            .join(ProductModel, ProductModel.id == VariantModel.product_id)
            .outerjoin(ActivationCodeModel, ActivationCodeModel.variant_id == VariantModel.id)
            .where(VariantModel.is_active.is_(True), ProductModel.is_active.is_(True))
            .group_by(
                VariantModel.id,
                VariantModel.price,
                VariantModel.value,
                VariantModel.currency,
                ProductModel.name,
                ActivationCodeModel.status,
            )
            .order_by(VariantModel.id)
        ).all()

    def _filtered(self, stmt, variant_id=None, status=None, code_keyword=None):
        if variant_id is not None:
            stmt = stmt.where(ActivationCodeModel.variant_id == variant_id)
        if status is not None:
            stmt = stmt.where(ActivationCodeModel.status == CodeStatus(status).value)
        if code_keyword:
            stmt = stmt.where(ActivationCodeModel.code.contains(code_keyword))
        return stmt

    def list_codes(self, offset: int, limit: int, **filters) -> list[tuple[ActivationCodeModel, str]]:
        stmt = (
            select(ActivationCodeModel, ProductModel.name)
            .join(VariantModel, VariantModel.id == ActivationCodeModel.variant_id)
            .join(ProductModel, ProductModel.id == VariantModel.product_id)
        )
        stmt = self._filtered(stmt, **filters)
        stmt = stmt.order_by(ActivationCodeModel.id).offset(offset).limit(limit)
        return list(self.db.execute(stmt).all())

    def count_codes(self, **filters) -> int:
        stmt = self._filtered(select(func.count(ActivationCodeModel.id)), **filters)
        return self.db.execute(stmt).scalar_one()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
