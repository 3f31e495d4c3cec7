"""
Points Ledger Service: FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from points_ledger.config import get_settings
from points_ledger.api.health import router as health_router
from points_ledger.api.students import router as students_router
from points_ledger.api.ledger import router as ledger_router
from points_ledger.api.awards import router as awards_router
from points_ledger.api.shop import router as shop_router
from points_ledger.models.base import SessionLocal
from points_ledger.services.catalog_service import CatalogService

settings = get_settings()

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def seed_demo_catalog() -> None:
    """Fill an empty shop with the demo catalog."""
    db = SessionLocal()
    try:
        CatalogService(db).seed_demo_catalog()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("demo catalog seeding failed")
        raise
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.SEED_DEMO_CATALOG:
        seed_demo_catalog()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Student points ledger and rewards shop",
    lifespan=lifespan,
)

# Register routers
app.include_router(health_router)
app.include_router(students_router)
app.include_router(ledger_router)
app.include_router(awards_router)
app.include_router(shop_router)
