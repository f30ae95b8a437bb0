# giftshop/main.py
from fastapi import FastAPI
import uvicorn

from giftshop.api import include_api
from giftshop.data.database import Base, engine
from giftshop.utils.logging import get_logger

# import wszystkich modeli przed create_all
import giftshop.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db(bind=engine):
    logger.info(f"Tworzenie tabel: {list(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=bind)


def create_app(create_tables: bool = True) -> FastAPI:
    if create_tables:
        init_db()

    app = FastAPI(
        title="Gift Shop Service",
        version="1.0.0",
    )
    return include_api(app)


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
