from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from standpos import __version__
from standpos.data.database import Base, engine
from standpos.api.deps import get_bus, get_monitor
from standpos.api.routers import orders, products, kitchen, health
from standpos.services.notification_service import ORDERS_UPDATED
from standpos.utils.settings import LOG_LEVEL
from standpos.utils.logging import setup_logging, get_logger

#models have to be imported before create_all
import standpos.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db():
    logger.info(f"Registered tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(LOG_LEVEL)
    init_db()

    bus = get_bus()
    token = bus.subscribe(ORDERS_UPDATED, lambda: logger.info("Orders changed, consumers refresh"))

    monitor = get_monitor()
    monitor.start()
    try:
        yield
    finally:
        monitor.stop(timeout=5)
        bus.unsubscribe(token)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Stand POS",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(orders.router)
    app.include_router(products.router)
    app.include_router(kitchen.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
