from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from common.core.exceptions import AppException
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render an AppException using its status code and body."""
    extra = {
        "path": request.url.path,
        "error_type": exc.__class__.__name__,
        "status": exc.status_code,
    }
    if exc.status_code >= 500:
        logger.error(f"Request failed: {exc.message}", extra=extra)
    else:
        logger.info(f"Request rejected: {exc.message}", extra=extra)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
