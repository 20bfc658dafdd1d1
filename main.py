# main.py
from __future__ import annotations
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import configure_mappers

from tradesight.api.exception_handlers import EXCEPTION_HANDLERS
from tradesight.api.router import router
from tradesight.core.config import get_settings
from tradesight.core.middleware import RequestLoggingMiddleware
from tradesight.database.session import engine
from tradesight.models import Base  # importing the package populates Base.metadata
from tradesight.utils.logger import get_logger, setup_logging

setup_logging()
configure_mappers()

logger = get_logger(__name__)
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for exc_type, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_type, handler)


# Create tables at startup (no Alembic)
@app.on_event("startup")
def _init_db():
    Base.metadata.create_all(bind=engine)
    logger.info(f"[Startup] {settings.app_name} {settings.app_version} ready on {engine.dialect.name}")


@app.get("/")
def root():
    return {"status": "ok"}


# Mount all routes
app.include_router(router, prefix="/api")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
