"""
Rate limiting à fenêtre glissante, adossé au store Redis.

- Une fenêtre = un sorted set par (classe d'endpoint, identifiant client)
- Seules les requêtes acceptées consomment le quota: une requête refusée
  est retirée du set immédiatement, elle ne repousse donc pas la fenêtre suivante
- Sous concurrence, deux requêtes peuvent être refusées toutes deux en limite
  de quota; la borne count <= limit n'est jamais dépassée
"""
import logging
import math
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import Request
from redis.exceptions import RedisError

from checkout_backend import config
from checkout_backend.errors import RateLimited
from checkout_backend.sessions.service import session_ref
from checkout_backend.store import CheckoutStore
from checkout_backend.utils.security import bearer_token, client_ip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_ms: int = 0

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.retry_after_ms / 1000))


class SlidingWindowRateLimiter:
    def __init__(self, store: CheckoutStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        client = self.store.client
        redis_key = self.store.key("ratelimit", key)
        now = int(self.clock() * 1000)
        window_ms = int(window_seconds * 1000)
        member = f"{now}:{secrets.token_hex(4)}"

        async with client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, 0, now - window_ms)
            pipe.zadd(redis_key, {member: now})
            pipe.zcard(redis_key)
            pipe.pexpire(redis_key, window_ms)
            _, _, count, _ = await pipe.execute()

        if count <= limit:
            return RateLimitDecision(True, limit - count)

        await client.zrem(redis_key, member)
        oldest = await client.zrange(redis_key, 0, 0, withscores=True)
        retry_after = int(oldest[0][1]) + window_ms - now if oldest else window_ms
        return RateLimitDecision(False, 0, max(1, retry_after))


def _identifier_by_ip(request: Request) -> str:
    return f"ip:{client_ip(request)}"

def _identifier_by_session(request: Request) -> str:
    token = bearer_token(request)
    if token:
        return f"session:{session_ref(token)}"
    return _identifier_by_ip(request)

IDENTIFIERS: Dict[str, Callable[[Request], str]] = {
    "ip": _identifier_by_ip,
    "session": _identifier_by_session,
}


def rate_limit(endpoint_class: str, by: str = "ip"):
    """
    Fabrique de dépendance FastAPI.
    - endpoint_class: clé de config.RATE_LIMITS (ou app.state.rate_limits)
    - by: "ip" (IP client, X-Forwarded-For résolu en amont) ou "session" (token Bearer haché)
    """
    identify = IDENTIFIERS[by]

    async def _dep(request: Request):
        # Respecter le flag global
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return
        limiter: Optional[SlidingWindowRateLimiter] = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return
        limits = getattr(request.app.state, "rate_limits", None) or config.RATE_LIMITS
        times, seconds = limits[endpoint_class]
        key = f"{endpoint_class}:{identify(request)}"
        try:
            decision = await limiter.hit(key, times, seconds)
        except RedisError:
            # Store indisponible: pas de 429 en production, on laisse passer
            logger.exception("rate_limit.store_error class=%s", endpoint_class)
            return
        if not decision.allowed:
            logger.warning(
                "rate_limit.rejected class=%s key=%s retry_after=%ss",
                endpoint_class, key, decision.retry_after_seconds,
            )
            raise RateLimited(decision.retry_after_seconds)
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    limiter = getattr(request.app.state, "rate_limiter", None)
    limits = getattr(request.app.state, "rate_limits", None) or config.RATE_LIMITS
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter is not None,
        "limits": {name: {"max": times, "windowSeconds": seconds} for name, (times, seconds) in limits.items()},
    }
