"""
Client Redis asynchrone partagé (sessions, dédup webhooks, rate limit).
- Production: redis.asyncio.from_url(REDIS_URL)
- Tests: fakeredis (USE_FAKE_REDIS_FOR_TESTS=1), serveur privé par instance
"""
import redis.asyncio as aioredis
from checkout_backend.config import REDIS_URL, USE_FAKE_REDIS_FOR_TESTS


def create_redis(url: str = "", *, fake: bool = USE_FAKE_REDIS_FOR_TESTS) -> aioredis.Redis:
    if fake:
        # Import tardif: fakeredis n'est installé qu'avec l'extra "test"
        from fakeredis import FakeServer
        from fakeredis.aioredis import FakeRedis
        return FakeRedis(server=FakeServer(), decode_responses=True)
    return aioredis.from_url(url or REDIS_URL, encoding="utf-8", decode_responses=True)


def describe_backend(client) -> str:
    return "fakeredis" if type(client).__module__.startswith("fakeredis") else "redis"
