from datetime import datetime, timezone

from fastapi import APIRouter, Request

from checkout_backend.infra.redis_client import describe_backend
from checkout_backend.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
async def health_root(request: Request):
    """
    Liveness + état du store (PING).
    Reste 200 si le store est indisponible, avec status "degraded".
    """
    store = request.app.state.store
    store_ok = await store.ping()
    return {
        "status": "ok" if store_ok else "degraded",
        "environment": request.app.state.environment,
        "store": {"ok": store_ok, "backend": describe_backend(store.client)},
        "rateLimit": rate_limit_health_info(request),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
