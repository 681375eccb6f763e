"""
FastAPI application factory for the BookNav library service.

The factory owns the application's resources: it builds one DatabaseManager
in the lifespan, creates the schema, and disposes the engine on shutdown.
Domain exceptions are translated to HTTP responses here and nowhere else.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..auth import AuthenticationError, AuthorizationError
from ..config import AppConfig, get_config
from ..database import (
    ConflictError,
    DatabaseManager,
    DuplicateError,
    InvalidInputError,
    NotFoundError,
    RepositoryException,
)
from ..observability import initialize_observability
from .routes import ROUTERS

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    DuplicateError: status.HTTP_409_CONFLICT,
    RepositoryException: status.HTTP_500_INTERNAL_SERVER_ERROR,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
}


def _register_error_handlers(app: FastAPI) -> None:
    async def domain_error(request: Request, exc: Exception) -> JSONResponse:
        code = next(
            (code for exc_type, code in ERROR_STATUS.items() if isinstance(exc, exc_type)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=code, content={"detail": "Internal database error"})
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    async def authentication_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    async def model_validation_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc)},
        )

    for exc_type in ERROR_STATUS:
        app.add_exception_handler(exc_type, domain_error)
    app.add_exception_handler(AuthenticationError, authentication_error)
    app.add_exception_handler(ValidationError, model_validation_error)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Build the BookNav API.

    Args:
        config: Application configuration; defaults to ``get_config()``

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()
    initialize_observability(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = DatabaseManager(config.get_database_url())
        manager.init_database()
        app.state.db = manager
        logger.info("%s %s started", config.app_name, config.app_version)
        try:
            yield
        finally:
            manager.close()
            logger.info("%s stopped", config.app_name)

    app = FastAPI(title=config.app_name, version=config.app_version, lifespan=lifespan)
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    @app.get("/", tags=["service"])
    def read_root() -> dict[str, str]:
        return {"message": f"{config.app_name} is running", **config.service_info}

    @app.get("/health", tags=["service"])
    def health(request: Request) -> JSONResponse:
        """Report whether the database answers."""
        db_ok = request.app.state.db.verify_connection()
        return JSONResponse(
            status_code=status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "healthy" if db_ok else "unhealthy", "database": db_ok},
        )

    for router in ROUTERS:
        app.include_router(router)

    return app
