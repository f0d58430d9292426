# cafepos/main.py
import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cafepos import __version__
from cafepos.api import (
    analytics_router,
    auth_router,
    categories_router,
    orders_router,
    payments_router,
    products_router,
    tables_router,
    users_router,
)
from cafepos.db.dependencies import get_storage
from cafepos.db.errors import OrderServiceError
from cafepos.utils.time_utils import iso_local

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

app = FastAPI(title="CafePOS Backend", version=__version__)

# Storage is created lazily by get_storage(); tests install their own.
app.state.storage = None

cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (
    auth_router,
    users_router,
    tables_router,
    categories_router,
    products_router,
    orders_router,
    payments_router,
    analytics_router,
):
    app.include_router(module.router)


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", summary="Liveness check")
async def health():
    return {
        "status": "ok",
        "timestamp": iso_local(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


@app.get("/", summary="Welcome")
async def root():
    return {"message": "Welcome to the CafePOS API", "version": __version__, "health": "/health"}


@app.on_event("shutdown")
def close_storage():
    storage = app.state.storage
    if storage is not None:
        storage.close()


def main():
    import uvicorn

    uvicorn.run(
        "cafepos.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()


__all__ = ["app", "get_storage"]
