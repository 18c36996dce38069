from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from loguru import logger

from pingradius.core.logging import setup_logging
from pingradius.core.init_db import init_db
from pingradius.core.db import SessionLocal
from pingradius.api.router import api_router
from pingradius.modules.connections.routes import router as connections_router
from pingradius.modules.notifications.router import router as notifications_router
from pingradius.services.engine import EngineService, EngineSettings
from pingradius.services.push_gateway import ExpoPushGateway
from pingradius.services.store import SqlDocumentStore

load_dotenv()


def build_engine_service() -> EngineService:
    store = SqlDocumentStore(SessionLocal)
    return EngineService(store, ExpoPushGateway(), EngineSettings())


def create_app(engine_service: EngineService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine_service is None:
            # Init DB before serving
            init_db()
            app.state.engine_service = build_engine_service()
        else:
            app.state.engine_service = engine_service
        logger.info("Engine service ready")
        yield
        logger.info("Shutting down")

    app = FastAPI(
        title="PingRadius Backend",
        version="0.1.0",
        lifespan=lifespan,
    )

    # All API routes (users, activities, feed via router.py)
    app.include_router(api_router)
    app.include_router(notifications_router)
    # Connections module
    app.include_router(connections_router)

    @app.get("/health")
    def health():
        logger.debug("Health check hit")
        return {"status": "ok"}

    return app


setup_logging()
logger.info("Starting PingRadius backend")

app = create_app()
