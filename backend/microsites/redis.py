from __future__ import annotations

from redis import Redis

from microsites.settings import settings


def get_redis_client() -> Redis:
    # Only used for short-lived per-tenant locks; fail fast when Redis is down.
    return Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
        socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
    )
