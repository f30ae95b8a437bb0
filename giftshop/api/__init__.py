# giftshop/api/__init__.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from giftshop.api.routers import admin, carts, catalog, health, orders, payments
from giftshop.domain.errors import GiftShopError
from giftshop.utils.logging import get_logger

logger = get_logger(__name__)

ROUTERS = (health.router, catalog.router, carts.router, orders.router, payments.router, admin.router)


async def giftshop_error_handler(request: Request, exc: GiftShopError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "detail": exc.message},
    )


def include_api(app: FastAPI) -> FastAPI:
    for router in ROUTERS:
        app.include_router(router)
    app.add_exception_handler(GiftShopError, giftshop_error_handler)
    return app
