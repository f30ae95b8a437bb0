# giftshop/services/notification_service.py
from giftshop.celery_worker import celery_app
from giftshop.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysylania powiadomien o zamowieniach.
    Uzywa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def send_order_completed(user_id: int, order_id: int, recipients: list[str]):
        """
        Zamowienie oplacone, kody mozna ujawnic klientowi / obdarowanym.
        """
        send_order_completed_task.delay(user_id, order_id, recipients)

    @staticmethod
    def send_order_closed(user_id: int, order_id: int, status: str):
        send_order_closed_task.delay(user_id, order_id, status)


@celery_app.task(name="giftshop.services.notification_service.send_order_completed_task")
def send_order_completed_task(user_id: int, order_id: int, recipients: list[str]):
    # TODO: wysylka maili z kodami do obdarowanych (SES), na razie tylko log
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} completed, recipients: {recipients}")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="giftshop.services.notification_service.send_order_closed_task")
def send_order_closed_task(user_id: int, order_id: int, status: str):
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} is now {status}")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}
