import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .api import admin, announcements, auth, categories, clubs, events, membership
from .db import Base, engine, get_session
from .errors import register_error_handlers
from .seed import seed_data

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="College Clubs API (FastAPI + SQLAlchemy)")

    # CORS for the single-page frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.CORS_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.on_event("startup")
    def startup() -> None:
        Base.metadata.create_all(engine)
        if config.SEED_ON_STARTUP:
            with get_session() as session:
                seed_data(session)
        logger.info("College clubs API started")

    @app.get("/api/health")
    def health() -> dict:
        return {"success": True, "message": "College Club Management API is running"}

    app.include_router(auth.router)
    app.include_router(clubs.router)
    app.include_router(membership.router)
    app.include_router(admin.router)
    app.include_router(announcements.router)
    app.include_router(events.router)
    app.include_router(categories.router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run("college_clubs.main:app", host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
