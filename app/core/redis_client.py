"""Client Redis singleton (sessions d'impersonation)."""

import logging
from typing import Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Client Redis singleton construit depuis settings.redis_url."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._instance is None:
            cls._instance = redis.Redis.from_url(
                settings.redis_url,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
        return cls._instance

    @classmethod
    def close(cls):
        """Ferme la connexion Redis (arrêt de l'application)."""
        if cls._instance:
            cls._instance.close()
            cls._instance = None


def get_redis() -> redis.Redis:
    return RedisClient.get_client()


def ping_redis() -> bool:
    """Vérifie la disponibilité de Redis (santé système)."""
    try:
        return bool(get_redis().ping())
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis injoignable : {e}")
        return False
