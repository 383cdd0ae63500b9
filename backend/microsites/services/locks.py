from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import structlog
from fastapi import HTTPException
from redis import Redis
from redis.exceptions import LockError

logger = structlog.get_logger(__name__)


def tenant_lock_key(subdomain: str) -> str:
    return f"lock:tenant:{subdomain}"


@contextmanager
def tenant_lock(redis_client: Redis, subdomain: str, *, ttl_seconds: int) -> Iterator[None]:
    lock = redis_client.lock(tenant_lock_key(subdomain), timeout=ttl_seconds)
    if not lock.acquire(blocking=False):
        logger.warning("tenant_lock_busy", subdomain=subdomain)
        raise HTTPException(
            status_code=409,
            detail={
                "ok": False,
                "error": {"code": "OPERATION_IN_PROGRESS", "message": "Another operation is in progress."},
            },
        )
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            logger.warning("tenant_lock_expired", subdomain=subdomain)
