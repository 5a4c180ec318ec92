import logging
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import officeshare.models  # noqa: F401
from officeshare.core.config import settings
from officeshare.core.database import Base, SessionLocal, engine
from officeshare.core.errors import (
    ApiError,
    api_error_handler,
    http_exception_handler,
    request_validation_exception_handler,
    sqlalchemy_error_handler,
)
from officeshare.core.minio_client import initialize_minio_bucket
from officeshare.monitoring.setup import setup_monitoring
from officeshare.routes import admin, auth, download, files, organizations, users
from officeshare.routes.organizations import organization_error_handler
from officeshare.services.organizations import OrganizationError
from officeshare.services.storage import object_store

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("office-share")

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                await conn.execute(text("PRAGMA journal_mode=WAL;"))
            logger.info("Creating database tables: %s", ", ".join(Base.metadata.tables))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    try:
        initialize_minio_bucket()
        logger.info("MinIO initialized")
    except Exception as e:
        logger.error(f"MinIO initialization failed: {e}")
        raise

    yield

    await engine.dispose()
    logger.info("Application shutdown complete")

app = FastAPI(
    title="Office Share",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length"],
)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(OrganizationError, organization_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)

for _router in (auth, files, download, organizations, users, admin):
    app.include_router(_router)
    app.include_router(_router, prefix="/api")

setup_monitoring(app)

@app.get("/health")
async def health_check():
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    try:
        await object_store.ping()
        minio_status = "ok"
    except Exception as e:
        minio_status = f"error: {str(e)}"

    return {
        "status": "running",
        "timestamp": datetime.utcnow().isoformat(),
        "database": db_status,
        "storage": minio_status
    }

if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_keep_alive=60,
        limit_concurrency=100
    )
