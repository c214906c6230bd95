"""
Smart Canteen: application entry point.

Students browse the menu, place orders and follow their token live; staff
run the kitchen board and the menu. A background task purges the order
table every night.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from . import config, store, __version__
from .api import router as api_router
from .broadcast import ConnectionHub
from .cleanup import CleanupScheduler
from .database import create_db_engine, create_session_factory, init_db
from .errors import CanteenError
from .models import ROLE_STAFF
from .pages import router as pages_router
from .services import OrderService
from .utils import hash_password

logger = logging.getLogger(__name__)

SAMPLE_MENU = [
    ("Masala Dosa", 50, "South Indian"),
    ("Idli Sambar", 40, "South Indian"),
    ("Veg Burger", 60, "Snacks"),
    ("Samosa", 15, "Snacks"),
    ("Veg Fried Rice", 80, "Meals"),
    ("Paneer Thali", 120, "Meals"),
    ("Masala Chai", 15, "Beverages"),
    ("Cold Coffee", 30, "Beverages"),
]


def seed_database(session_factory) -> None:
    """Add the default staff account and a starter menu to an empty database."""
    with session_factory() as db:
        if store.get_user_by_username(db, "staff") is None:
            store.create_user(db, "staff", hash_password("staff123"), ROLE_STAFF)
            logger.info("Created default staff account 'staff'")
        if not store.list_menu(db):
            for name, price, category in SAMPLE_MENU:
                store.add_menu_item(db, name, price, category)
            logger.info("Seeded %d menu items", len(SAMPLE_MENU))
        db.commit()


def create_app(
    database_url: str = None,
    secret_key: str = None,
    enable_scheduler: bool = None,
    seed: bool = None,
) -> FastAPI:
    database_url = database_url or config.DATABASE_URL
    enable_scheduler = config.ENABLE_CLEANUP_SCHEDULER if enable_scheduler is None else enable_scheduler
    seed = config.SEED_DEMO_DATA if seed is None else seed

    engine = create_db_engine(database_url)
    session_factory = create_session_factory(engine)
    hub = ConnectionHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        with session_factory() as db:
            store.ensure_order_sequence(db)
            db.commit()
        if seed:
            seed_database(session_factory)
        scheduler = None
        if enable_scheduler:
            scheduler = CleanupScheduler(session_factory)
            scheduler.start()
        logger.info("Smart Canteen ready")
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            engine.dispose()

    app = FastAPI(title="Smart Canteen", version=__version__, lifespan=lifespan)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.hub = hub
    app.state.order_service = OrderService(hub)

    app.add_middleware(SessionMiddleware, secret_key=secret_key or config.SECRET_KEY)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CanteenError)
    async def canteen_error_handler(request, exc: CanteenError):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    app.include_router(api_router)
    app.include_router(pages_router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if config.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    run()
