"""
Envelope exception handlers.

Every error leaves the API as {"success": false, "error": "..."}, whether it
was raised by a route, by FastAPI's request validation, or escaped unhandled.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from app.shared.core.exceptions import AssetlineException
from app.shared.core.responses import error_response

logger = structlog.get_logger()


async def assetline_exception_handler(request: Request, exc: AssetlineException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
        path=request.url.path,
        details=exc.details,
    )
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        detail = f"Route {request.method} {request.url.path} not found"
    else:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    response = error_response(exc.status_code, detail)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
    logger.info("request_validation_failed", path=request.url.path, field=field)
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        f"Invalid {field}: {first.get('msg', 'validation error')}",
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Internals stay in the logs
    logger.exception("unhandled_exception", path=request.url.path, error_type=type(exc).__name__)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AssetlineException, assetline_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
