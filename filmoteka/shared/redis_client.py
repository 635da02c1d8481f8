"""
Клиенты Redis для хранилища сессий и хранилища CSRF токенов.

Экземпляр redis.Redis потокобезопасен: соединения берутся из пула
в момент выполнения команды, поэтому клиент создается один раз на процесс.
"""

import logging
from functools import lru_cache

import redis
from redis.exceptions import RedisError

from filmoteka.config.settings import settings

logger = logging.getLogger(__name__)


def create_redis_client(url: str) -> redis.Redis:
    """Создание клиента Redis по DSN."""
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        retry_on_timeout=True
    )


@lru_cache()
def get_session_redis() -> redis.Redis:
    """Клиент хранилища сессий (общий для обоих сервисов)."""
    return create_redis_client(settings.SESSION_STORE_URL)


@lru_cache()
def get_csrf_redis() -> redis.Redis:
    """Клиент хранилища CSRF токенов."""
    return create_redis_client(settings.CSRF_STORE_URL)


def check_redis_connection(client: redis.Redis, name: str) -> bool:
    """Проверка подключения к Redis."""
    try:
        client.ping()
        logger.info(f"Redis connection ({name}): OK")
        return True
    except RedisError as e:
        logger.warning(f"Redis connection ({name}): FAILED - {e}")
        return False
