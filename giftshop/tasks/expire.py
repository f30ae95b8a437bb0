# giftshop/tasks/expire.py
from giftshop.celery_worker import celery_app
from giftshop.data.database import SessionLocal
from giftshop.services.order_service import OrderService
from giftshop.utils.logging import get_logger

logger = get_logger(__name__)


def expire_pending_orders(session_factory=SessionLocal) -> list[int]:
    db = session_factory()
    try:
        expired = OrderService(db).expire_pending()
        logger.info(f"Expired {len(expired)} pending orders: {expired}")
        return expired
    finally:
        db.close()


@celery_app.task(name="giftshop.tasks.expire.expire_pending_orders_task")
def expire_pending_orders_task():
    logger.info("Expire pending orders task started")
    return expire_pending_orders()
