import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from .api import api_router
from .core.config import settings
from .core.database import get_engine
from .core.exceptions import AuthServiceError
from .core.queues import check_redis_connection

# Import all models to register them with SQLModel metadata
from .models import User, UserSession  # noqa: F401

logger = logging.getLogger(__name__)


async def auth_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests are reported as 400 rather than FastAPI's default 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Unhandled database error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Account Service API",
        description="User registration, login, email verification, password reset and JWT sessions",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    app.add_exception_handler(AuthServiceError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # --- Event Handlers ---
    @app.on_event("startup")
    async def startup_event():
        logger.info("Starting up Account Service API...")

        if settings.AUTO_CREATE_TABLES:
            try:
                logger.info("Auto-creating database tables...")
                SQLModel.metadata.create_all(get_engine())
                logger.info("Database tables created successfully!")
            except Exception as e:
                logger.error(f"Failed to create database tables: {e}")
                logger.error("Database functionality may not work properly.")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down Account Service API...")

    # --- API Endpoints ---
    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "Account Service API", "version": "1.0.0"}

    @app.get("/health")
    def health_check():
        """Health check endpoint with database and Redis status."""
        health = {"status": "healthy", "database": "unknown", "redis": "unknown"}

        try:
            with get_engine().connect() as conn:
                conn.execute(text("SELECT 1"))
            health["database"] = "connected"
        except Exception as e:
            health["database"] = f"error: {str(e)}"
            health["status"] = "degraded"

        if check_redis_connection():
            health["redis"] = "connected"
        else:
            health["redis"] = "not_available"
            health["status"] = "degraded"

        return health

    return app


app = create_app()
