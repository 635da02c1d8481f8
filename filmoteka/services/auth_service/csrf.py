"""
CSRF токены сервиса авторизации.

Токен не привязан к пользователю: достаточно, чтобы он был в хранилище.
Повторный запрос с действующим токеном возвращает тот же токен, поэтому
токен не одноразовый.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis
from fastapi import Depends, Header
from redis.exceptions import RedisError

from filmoteka.config.settings import settings
from filmoteka.shared.exceptions import CsrfInvalidError, StoreUnavailableError
from filmoteka.shared.redis_client import get_csrf_redis
from filmoteka.monitoring.metrics import record_store_error

logger = logging.getLogger(__name__)

CSRF_KEY_PREFIX = "csrf:v1:"
CSRF_HEADER = "X-CSRF-Token"


class CsrfManager:
    """Выдача и проверка CSRF токенов."""

    def __init__(self, client: redis.Redis, ttl: int = settings.CSRF_TTL_SECONDS) -> None:
        self.r = client
        self.ttl = ttl

    @staticmethod
    def _key(token: str) -> str:
        return f"{CSRF_KEY_PREFIX}{token}"

    def create_csrf_token(self) -> str:
        """Новый токен с коротким TTL."""
        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.ttl)

        try:
            self.r.set(self._key(token), expires_at.isoformat(), ex=self.ttl)
        except RedisError as e:
            record_store_error("csrf", "set")
            raise StoreUnavailableError("csrf", f"Failed to create CSRF token: {e}") from e

        return token

    def check_csrf_token(self, token: Optional[str]) -> bool:
        """
        Действует ли токен.

        Пустой токен (и литерал "null", который сервер сам отдает при
        ошибке) недействителен без обращения к хранилищу.
        """
        if not token or token == "null":
            return False

        try:
            return bool(self.r.exists(self._key(token)))
        except RedisError as e:
            record_store_error("csrf", "exists")
            raise StoreUnavailableError("csrf", f"Failed to check CSRF token: {e}") from e


def get_csrf_manager() -> CsrfManager:
    """Dependency для получения менеджера CSRF токенов."""
    return CsrfManager(get_csrf_redis())


def require_csrf_token(
    x_csrf_token: Optional[str] = Header(None, alias=CSRF_HEADER),
    csrf: CsrfManager = Depends(get_csrf_manager)
) -> str:
    """
    Dependency для изменяющих запросов без сессии (вход, регистрация).

    Raises:
        CsrfInvalidError: Токена нет или он истек (412)
    """
    if not csrf.check_csrf_token(x_csrf_token):
        raise CsrfInvalidError()
    return x_csrf_token
