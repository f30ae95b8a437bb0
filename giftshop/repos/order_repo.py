# giftshop/repos/order_repo.py
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from giftshop.data.models.activation_code import ActivationCodeModel
from giftshop.data.models.order import OrderModel
from giftshop.data.models.order_event import OrderEventModel
from giftshop.data.models.order_item import OrderItemModel
from giftshop.domain.statuses import OrderStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(
                selectinload(OrderModel.items).selectinload(OrderItemModel.codes),
                selectinload(OrderModel.transaction),
                selectinload(OrderModel.events),
            )
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def code_ids(self, order_id: int, statuses=None) -> list[int]:
        stmt = (
            select(ActivationCodeModel.id)
            .join(OrderItemModel, OrderItemModel.id == ActivationCodeModel.order_item_id)
            .where(OrderItemModel.order_id == order_id)
            .order_by(ActivationCodeModel.id)
        )
        if statuses is not None:
            stmt = stmt.where(ActivationCodeModel.status.in_([s.value for s in statuses]))
        return list(self.db.execute(stmt).scalars().all())

    def update_order_version(self, order_id: int, old_version: int, new_data: dict) -> int:
        # optimistic locking, np. update orders set status=.., version=2 where id=1 and version=1
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def add_event(self, event: OrderEventModel):
        self.db.add(event)

    def _filtered(self, stmt, user_id=None, status=None, date_from=None, date_to=None):
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        if status is not None:
            stmt = stmt.where(OrderModel.status == OrderStatus(status).value)
        if date_from is not None:
            stmt = stmt.where(OrderModel.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(OrderModel.created_at < date_to)
        return stmt

    def list_orders(self, offset: int, limit: int, **filters) -> list[OrderModel]:
        stmt = select(OrderModel).options(
            selectinload(OrderModel.items).selectinload(OrderItemModel.codes),
            selectinload(OrderModel.transaction),
        )
        stmt = self._filtered(stmt, **filters)
        stmt = stmt.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).offset(offset).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count_orders(self, **filters) -> int:
        stmt = self._filtered(select(func.count(OrderModel.id)), **filters)
        return self.db.execute(stmt).scalar_one()

    def pending_older_than(self, cutoff: datetime) -> list[int]:
        return list(
            self.db.execute(
                select(OrderModel.id)
                .where(
                    OrderModel.status == OrderStatus.PENDING.value,
                    OrderModel.created_at < cutoff,
                )
                .order_by(OrderModel.id)
            ).scalars().all()
        )

    def completed_orders(self, date_from=None, date_to=None) -> list[tuple[datetime, object]]:
        stmt = select(OrderModel.created_at, OrderModel.total_amount).where(
            OrderModel.status == OrderStatus.COMPLETED.value
        )
        stmt = self._filtered(stmt, date_from=date_from, date_to=date_to)
        return list(self.db.execute(stmt.order_by(OrderModel.created_at)).all())

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
