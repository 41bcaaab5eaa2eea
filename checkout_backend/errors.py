"""
Taxonomie des erreurs client du checkout.

Chaque erreur est une HTTPException FastAPI: les services la lèvent directement,
le handler de app_setup.exceptions la rend en {"error": ..., "details"?: ...}.
"""
from typing import Any, Dict, Optional
from fastapi import HTTPException


class CheckoutError(HTTPException):
    status_code = 400
    message = "Bad request"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=self.status_code, detail=message or self.message, headers=headers)
        self.details = details


class InvalidInput(CheckoutError):
    status_code = 400
    message = "Invalid input"


class InvalidAmount(CheckoutError):
    status_code = 400
    message = "Invalid amount"


class Unauthenticated(CheckoutError):
    status_code = 401
    message = "No session found"


class Forbidden(CheckoutError):
    status_code = 403
    message = "Forbidden"


class CsrfMismatch(Forbidden):
    message = "Invalid CSRF token"


class ForbiddenOrigin(Forbidden):
    message = "Unauthorized domain"


class RateLimited(CheckoutError):
    status_code = 429
    message = "Too many requests, please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        retry_after = max(1, int(retry_after))
        super().__init__(message, headers={"Retry-After": str(retry_after)})
        self.retry_after = retry_after


class SignatureInvalid(CheckoutError):
    status_code = 400
    message = "Webhook Error: invalid signature"


class ReplaySuspected(SignatureInvalid):
    message = "Webhook Error: timestamp outside the tolerance zone"


class UpstreamFailure(CheckoutError):
    status_code = 502
    message = "Payment provider error"


class UpstreamTimeout(CheckoutError):
    status_code = 503
    message = "Upstream service timed out, please retry"

    def __init__(self, message: Optional[str] = None, retry_after: int = 5):
        super().__init__(message, headers={"Retry-After": str(retry_after)})
