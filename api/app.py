from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.events import router as events_router
from api.routes.imports import router as imports_router
from syllabus_sync.logging_config import setup_logging


def create_app() -> FastAPI:
    app = FastAPI(title="Syllabus Sync API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(imports_router)
    app.include_router(events_router)

    @app.get("/healthz")
    def health() -> dict:
        return {"status": "ok"}

    return app


setup_logging()
app = create_app()
