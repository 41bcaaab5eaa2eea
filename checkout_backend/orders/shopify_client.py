"""
Client Shopify Admin REST (commandes et brouillons de commande).
- httpx.AsyncClient avec timeout borné
- Retries avec backoff exponentiel sur 429, 5xx et erreurs de transport
  (Retry-After respecté quand Shopify le fournit)
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from checkout_backend import config

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class ShopifyError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ShopifyAdminClient:
    def __init__(
        self,
        store_domain: str,
        access_token: str,
        *,
        api_version: str = config.SHOPIFY_API_VERSION,
        timeout: float = config.UPSTREAM_TIMEOUT_SECONDS,
        max_retries: int = config.UPSTREAM_MAX_RETRIES,
        backoff_seconds: float = config.UPSTREAM_RETRY_BACKOFF_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store_domain = store_domain
        self.api_version = api_version
        self.max_retries = max(0, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=f"https://{store_domain}/admin/api/{api_version}",
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.store_domain) and bool(self._client.headers.get("X-Shopify-Access-Token"))

    def _delay(self, attempt: int, response: Optional[httpx.Response]) -> float:
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            try:
                if retry_after:
                    return min(float(retry_after), 30.0)
            except ValueError:
                pass
        return self.backoff_seconds * (2 ** attempt)

    def _decode(self, response: httpx.Response, method: str, path: str) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            logger.error("orders.shopify invalid json status=%s method=%s path=%s", response.status_code, method, path)
            raise ShopifyError(f"Invalid JSON body on {method} {path}", response.status_code)
        if not isinstance(data, dict):
            raise ShopifyError(f"Unexpected body on {method} {path}", response.status_code)
        return data

    async def request(self, method: str, path: str, *, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        last_error: Optional[ShopifyError] = None
        for attempt in range(self.max_retries + 1):
            response: Optional[httpx.Response] = None
            try:
                response = await self._client.request(method, path, json=json, params=params)
            except httpx.RequestError as e:
                last_error = ShopifyError(f"{type(e).__name__} on {method} {path}")
                logger.warning("orders.shopify transport error method=%s path=%s attempt=%s err=%s", method, path, attempt + 1, type(e).__name__)
            else:
                if response.status_code in RETRYABLE_STATUSES:
                    last_error = ShopifyError(f"HTTP {response.status_code} on {method} {path}", response.status_code)
                    logger.warning("orders.shopify retryable status=%s method=%s path=%s attempt=%s", response.status_code, method, path, attempt + 1)
                elif response.status_code >= 400:
                    logger.error("orders.shopify rejected status=%s method=%s path=%s body=%s", response.status_code, method, path, response.text[:500])
                    raise ShopifyError(f"HTTP {response.status_code} on {method} {path}", response.status_code)
                else:
                    return self._decode(response, method, path)
            if attempt < self.max_retries:
                await self._sleep(self._delay(attempt, response))
        raise last_error or ShopifyError(f"{method} {path} failed")

    async def create_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        data = await self.request("POST", "/orders.json", json={"order": order})
        return data.get("order") or {}

    async def create_draft_order(self, draft_order: Dict[str, Any]) -> Dict[str, Any]:
        data = await self.request("POST", "/draft_orders.json", json={"draft_order": draft_order})
        return data.get("draft_order") or {}

    async def update_draft_order(self, draft_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        data = await self.request("PUT", f"/draft_orders/{draft_id}.json", json={"draft_order": {"id": draft_id, **changes}})
        return data.get("draft_order") or {}

    async def complete_draft_order(self, draft_id: int, *, payment_pending: bool = False) -> Dict[str, Any]:
        data = await self.request(
            "PUT",
            f"/draft_orders/{draft_id}/complete.json",
            params={"payment_pending": "true" if payment_pending else "false"},
        )
        return data.get("draft_order") or {}

    async def delete_draft_order(self, draft_id: int) -> None:
        await self.request("DELETE", f"/draft_orders/{draft_id}.json")

    async def aclose(self) -> None:
        await self._client.aclose()
