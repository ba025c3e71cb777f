import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dmv_assistant.api.routes import router
from dmv_assistant.core.errors import (
    ClassificationUnavailableError,
    ConcurrentUpdateError,
    ConfigurationError,
    ExternalServiceError,
    ExtractionFailedError,
    NotFoundError,
    RepositoryError,
    UnsupportedFileTypeError,
    ValidationError,
)
from dmv_assistant.core.log_config import setup_logging
from dmv_assistant.deps import get_catalog

load_dotenv()
logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[Exception], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UnsupportedFileTypeError: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    ExtractionFailedError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConcurrentUpdateError: status.HTTP_409_CONFLICT,
    RepositoryError: status.HTTP_502_BAD_GATEWAY,
    ClassificationUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ExternalServiceError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}
_RETRYABLE: tuple[type[Exception], ...] = (ExternalServiceError, ConcurrentUpdateError)


def _status_for(exc: Exception) -> int:
    for exc_type in type(exc).__mro__:
        if exc_type in _ERROR_STATUS:
            return _ERROR_STATUS[exc_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _register_exception_handlers(app: FastAPI) -> None:
    def handler(request: Request, exc: Exception) -> JSONResponse:
        status_code = _status_for(exc)
        logger.warning("%s %s failed with %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        content = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, _RETRYABLE):
            content["retryable"] = True
        return JSONResponse(status_code=status_code, content=content)

    for exc_type in _ERROR_STATUS:
        app.add_exception_handler(exc_type, handler)

    def unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})

    app.add_exception_handler(Exception, unhandled_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The catalog is immutable; load it before the first request is served.
    get_catalog()
    yield


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="DMV Assistant API", version="1.0.0", lifespan=lifespan)
    _register_exception_handlers(app)

    app.include_router(router, prefix="")

    return app


app = create_app()
