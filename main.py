from fastapi import FastAPI
from contextlib import asynccontextmanager
from cardgen.core.config import settings
from cardgen.core.db.base import dispose_engine, init_models
from cardgen.core.logging import get_logger, setup_logging
from cardgen.apis.deps import close_provider
from cardgen.apis.flashcards.main import router as flashcards_router
from cardgen.apis.generations.main import router as generations_router

import uvicorn
from cardgen.core.task_queue import queue as _bg_queue

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.app.create_tables:
        await init_models()
    _bg_queue.start()
    try:
        yield
    finally:
        # Let in-flight generations settle before the process exits
        await _bg_queue.stop()
        await close_provider()
        await dispose_engine()


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title=settings.app.name, version=settings.app.version, lifespan=lifespan
    )

    app.include_router(generations_router)
    app.include_router(flashcards_router)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "app": settings.app.name,
            "version": settings.app.version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.app.port,
            reload=not settings.app.is_production,
        )
    except Exception as e:
        logger.error(f"An error occurred when starting the server: {e}.")
