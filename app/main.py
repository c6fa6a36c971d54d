import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.core.config import get_settings
from app.core.database_init import init_database_schema
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware
from app.routers import get_api_router, get_static_router
from app.services import exceptions as service_exceptions
from app.services.bootstrap import ensure_default_admin

MAX_LOGGED_BODY = 2048


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    logger = logging.getLogger("app.errors")

    app = FastAPI(title=settings.PROJECT_NAME)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body_text = ""
        # multipart streams are consumed by form parsing
        if not request.headers.get("content-type", "").startswith("multipart/"):
            body_bytes = await request.body()
            body_text = body_bytes[:MAX_LOGGED_BODY].decode("utf-8", errors="replace") if body_bytes else ""
        logger.warning(
            "Validation error on %s %s body=%s detail=%s",
            request.method,
            request.url.path,
            body_text,
            exc.errors(),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_errors(exc.errors())},
        )

    @app.exception_handler(service_exceptions.IntegrityFault)
    async def integrity_fault_handler(request: Request, exc: service_exceptions.IntegrityFault):
        logger.error("Integrity fault on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Data integrity fault", "message": str(exc)},
        )

    @app.exception_handler(service_exceptions.StorageUnavailable)
    async def storage_unavailable_handler(request: Request, exc: service_exceptions.StorageUnavailable):
        logger.error("Storage unavailable on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage temporarily unavailable"},
            headers={"Retry-After": "5"},
        )

    @app.exception_handler(OperationalError)
    async def database_unavailable_handler(request: Request, exc: OperationalError):
        logger.error("Database unavailable on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage temporarily unavailable"},
            headers={"Retry-After": "5"},
        )

    app.include_router(get_api_router(), prefix=settings.API_PREFIX)
    app.include_router(get_static_router())

    @app.on_event("startup")
    def startup_event():
        init_database_schema()
        ensure_default_admin()

    return app


def jsonable_errors(errors) -> list[dict]:
    # raw inputs (uploads, decimals) are not JSON encodable
    return [{key: value for key, value in error.items() if key not in {"ctx", "input"}} for error in errors]


app = create_app()
