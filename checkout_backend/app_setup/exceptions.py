"""
Gestionnaires d'exceptions utilisés par la factory.
- Erreurs client (CheckoutError et HTTPException Starlette): {"error": ..., "details"?: ...}
- Validation FastAPI: 400 {"error": "Invalid input", "details": [...]} sans écho des valeurs
- Exceptions non gérées: 500 générique, trace uniquement dans les logs
"""
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from checkout_backend.errors import RateLimited

logger = logging.getLogger(__name__)


def error_body(exc: StarletteHTTPException) -> dict:
    body = {"error": str(exc.detail)}
    details = getattr(exc, "details", None)
    if details is not None:
        body["details"] = details
    if isinstance(exc, RateLimited):
        body["retryAfter"] = exc.retry_after
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error("http.error status=%s path=%s error=%s", exc.status_code, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid input", "details": details})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("http.unhandled path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
