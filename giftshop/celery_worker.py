# giftshop/celery_worker.py
from celery import Celery

from giftshop.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "giftshop",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# taski trzeba zaimportowac jawnie, zeby Celery je zarejestrowal
celery_app.conf.imports = (
    "giftshop.tasks.expire",
    "giftshop.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-pending-orders-every-minute": {
        "task": "giftshop.tasks.expire.expire_pending_orders_task",
        "schedule": 60.0,
    },
}

celery_app.conf.timezone = "UTC"
