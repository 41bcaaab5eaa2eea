# module checkout_backend.store.kv
import json
import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class CheckoutStore:
    """
    Façade sur un client redis.asyncio (ou fakeredis).

    Toutes les écritures sont des opérations atomiques mono-clé:
    - set_json: SET EX
    - set_if_absent: SET NX EX (dédup webhooks, verrou commande par paiement)
    - append_to_list: RPUSH + EXPIRE en transaction
    """

    def __init__(self, client, *, namespace: str = "checkout"):
        self.client = client
        self.namespace = namespace

    def key(self, *parts: str) -> str:
        return ":".join([self.namespace, *[str(p) for p in parts]])

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("store.get_json corrupted value key=%s", key)
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self.client.set(key, json.dumps(value), ex=max(1, int(ttl_seconds)))

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """True si la clé a été posée par cet appel, False si elle existait déjà."""
        created = await self.client.set(key, value, ex=max(1, int(ttl_seconds)), nx=True)
        return bool(created)

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.set(key, value, ex=max(1, int(ttl_seconds)))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.client.delete(*keys))

    async def append_to_list(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.rpush(key, value)
            pipe.expire(key, max(1, int(ttl_seconds)))
            await pipe.execute()

    async def get_list(self, key: str) -> List[str]:
        return list(await self.client.lrange(key, 0, -1))

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception:
            logger.exception("store.ping failed")
            return False

    async def close(self) -> None:
        await self.client.aclose()
