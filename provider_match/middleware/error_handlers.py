"""
Global Exception Handling and Request Middleware for the Provider Matching API
"""
import os
import time
import traceback
import uuid
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import ValidationError

from provider_match.utils.exceptions import ProviderMatchBaseException, map_to_http_exception
from provider_match.utils.logging_config import get_logger

logger = get_logger(__name__)


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def _expose_internal_errors() -> bool:
    return os.getenv("ENVIRONMENT", "production").lower() == "development"


def error_detail(exc: ProviderMatchBaseException) -> dict:
    """Client-facing detail; server-side error internals only in development."""
    http_exc = map_to_http_exception(exc)
    detail = dict(http_exc.detail)
    if http_exc.status_code >= 500 and not _expose_internal_errors():
        detail.pop("error", None)
    return detail


def create_error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
    """Create standardized error response"""

    # Ensure detail is a dictionary
    if isinstance(detail, str):
        detail = {"message": detail}
    elif not isinstance(detail, dict):
        detail = {"message": str(detail)}

    error_response = {
        "success": False,
        "timestamp": datetime.utcnow().isoformat(),
        "request_id": request_id,
        "status_code": status_code,
        **detail
    }

    return JSONResponse(
        status_code=status_code,
        content=error_response,
        headers={"X-Request-ID": request_id}
    )


def _validation_detail(exc) -> dict:
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    fields = [f for f in fields if f]
    message = f"Invalid request data: {', '.join(fields)}" if fields else "Invalid request data"
    return {"message": message, "validation_errors": fields}


async def provider_match_exception_handler(request: Request, exc: ProviderMatchBaseException) -> JSONResponse:
    request_id = _request_id(request)
    http_exc = map_to_http_exception(exc)
    log = logger.error if http_exc.status_code >= 500 else logger.warning
    log(
        f"{exc.__class__.__name__} in {request.method} {request.url.path}: {exc.message}",
        extra={
            "request_id": request_id,
            "error_code": exc.error_code,
            "details": exc.details,
            "cause": str(exc.cause) if exc.cause else None,
        }
    )
    return create_error_response(request_id, http_exc.status_code, error_detail(exc))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = _request_id(request)
    logger.warning(
        f"Validation error in {request.method} {request.url.path}: {exc}",
        extra={"request_id": request_id}
    )
    return create_error_response(request_id, 400, _validation_detail(exc))


def register_exception_handlers(app: FastAPI) -> None:
    """Render custom and request-validation errors as {success: false, message}."""
    app.add_exception_handler(ProviderMatchBaseException, provider_match_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Outermost safety net; assigns the request id used by every log line"""

    async def dispatch(self, request: Request, call_next):
        request_id = _request_id(request)

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else "unknown"
            }
        )

        try:
            response = await call_next(request)

            logger.info(
                f"Request completed: {request.method} {request.url.path} - {response.status_code}",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "method": request.method,
                    "path": request.url.path
                }
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except ProviderMatchBaseException as exc:
            logger.error(
                f"Custom exception in {request.method} {request.url.path}: {exc.message}",
                extra={
                    "request_id": request_id,
                    "error_code": exc.error_code,
                    "details": exc.details,
                }
            )
            http_exc = map_to_http_exception(exc)
            return create_error_response(request_id, http_exc.status_code, error_detail(exc))

        except RequestValidationError as exc:
            logger.error(
                f"Validation error in {request.method} {request.url.path}: {exc}",
                extra={"request_id": request_id}
            )
            return create_error_response(request_id, 400, _validation_detail(exc))

        except ValidationError as exc:
            # Pydantic errors escaping a route are input problems
            logger.error(
                f"Pydantic validation error in {request.method} {request.url.path}: {exc}",
                extra={"request_id": request_id}
            )
            return create_error_response(request_id, 400, _validation_detail(exc))

        except HTTPException as exc:
            logger.warning(
                f"HTTP exception in {request.method} {request.url.path}: {exc.detail}",
                extra={"request_id": request_id, "status_code": exc.status_code}
            )
            return create_error_response(request_id, exc.status_code, exc.detail)

        except Exception as exc:
            logger.error(
                f"Unhandled exception in {request.method} {request.url.path}: {str(exc)}",
                extra={
                    "request_id": request_id,
                    "exception_type": exc.__class__.__name__,
                    "traceback": traceback.format_exc(),
                },
                exc_info=True
            )

            error_response = {"message": "An unexpected error occurred. Please try again later."}
            if _expose_internal_errors():
                error_response["error"] = str(exc)
            return create_error_response(request_id, 500, error_response)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Debug-level request details, info-level response summary"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = _request_id(request)

        request_body = None
        if request.method in ["POST", "PUT", "PATCH"]:
            body = await request.body()
            if len(body) < 10000:
                request_body = body.decode("utf-8", errors="ignore")[:1000]
            else:
                request_body = f"<Large body: {len(body)} bytes>"

        logger.debug(
            f"Request details: {request.method} {request.url}",
            extra={"request_id": request_id, "body": request_body}
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            processing_time = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} after {processing_time:.3f}s",
                extra={"request_id": request_id, "exception": str(exc)}
            )
            raise

        processing_time = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code} in {processing_time:.3f}s",
            extra={"request_id": request_id, "status_code": response.status_code}
        )
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Slow-request warnings and the X-Processing-Time header"""

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = _request_id(request)

        response = await call_next(request)

        processing_time = time.time() - start_time
        if processing_time > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} took {processing_time:.3f}s",
                extra={
                    "request_id": request_id,
                    "processing_time": processing_time,
                    "threshold": self.slow_request_threshold
                }
            )

        response.headers["X-Processing-Time"] = f"{processing_time:.3f}"
        return response
