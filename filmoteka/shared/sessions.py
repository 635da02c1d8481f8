"""
Хранилище сессий пользователей.

Хранилище общее для сервиса авторизации и сервиса каталога, поэтому формат
записи является контрактом между ними:

    ключ:     session:v1:<session_id>
    значение: {"login": "<логин>", "expiresAt": "<ISO-8601 UTC>"}

TTL ключа в Redis совпадает со временем жизни сессии, сервис сам ничего
не вычищает.
"""

import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from filmoteka.config.settings import settings
from filmoteka.shared.exceptions import NotFoundError, StoreUnavailableError
from filmoteka.monitoring.metrics import record_store_error
from filmoteka.shared.redis_client import get_session_redis
from filmoteka.services.auth_service import crud as auth_crud

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:v1:"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """Случайный URL-safe идентификатор (256 бит)."""
    return secrets.token_urlsafe(32)


class SessionManager:
    """
    Операции над сессиями поверх Redis.

    Любая ошибка Redis превращается в StoreUnavailableError и отдается
    вызывающему коду, который отвечает клиенту статусом 500.
    """

    def __init__(self, client: redis.Redis, ttl: int = settings.SESSION_TTL_SECONDS) -> None:
        self.r = client
        self.ttl = ttl

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    def create_session(self, login: str) -> Tuple[str, datetime]:
        """
        Создание новой сессии.

        Parameters
        ----------
        login : str
            Логин владельца сессии.

        Returns
        -------
        tuple
            Идентификатор сессии и момент ее истечения.
        """
        session_id = generate_session_id()
        expires_at = _now() + timedelta(seconds=self.ttl)
        data = json.dumps({"login": login, "expiresAt": expires_at.isoformat()})

        try:
            self.r.set(self._key(session_id), data, ex=self.ttl)
        except RedisError as e:
            record_store_error("session", "set")
            raise StoreUnavailableError("session", f"Failed to create session: {e}") from e

        logger.debug(f"Session created for {login}")
        return session_id, expires_at

    def _load(self, session_id: str) -> Optional[dict]:
        """Чтение записи сессии; None, если сессии нет или она истекла."""
        if not session_id:
            return None
        try:
            raw = self.r.get(self._key(session_id))
        except RedisError as e:
            record_store_error("session", "get")
            raise StoreUnavailableError("session", f"Failed to read session: {e}") from e

        if not raw:
            return None

        try:
            data = json.loads(raw)
            expires_at = datetime.fromisoformat(data["expiresAt"])
        except (ValueError, KeyError, TypeError):
            logger.error(f"Malformed session record for key {self._key(session_id)}")
            return None

        if expires_at <= _now():
            return None
        return data

    def find_active_session(self, session_id: str) -> bool:
        """Есть ли в хранилище действующая сессия с таким идентификатором."""
        return self._load(session_id) is not None

    def get_user_name(self, session_id: str) -> str:
        """
        Логин владельца сессии.

        Raises
        ------
        NotFoundError
            Если сессии нет или она истекла.
        """
        data = self._load(session_id)
        if data is None:
            raise NotFoundError("session")
        return data["login"]

    def get_user_id(self, session_id: str, db: Session) -> int:
        """
        ID владельца сессии (логин, спроецированный через таблицу users).

        Raises
        ------
        NotFoundError
            Если сессии нет или пользователь с таким логином не найден.
        """
        login = self.get_user_name(session_id)
        user = auth_crud.get_user_by_login(db, login)
        if user is None:
            raise NotFoundError("user", login)
        return user.id

    def rebind_session(self, session_id: str, login: str) -> None:
        """
        Смена владельца сессии с сохранением оставшегося TTL.

        Запись обновляется только если ключ еще существует (SET XX):
        истекшая между чтением и записью сессия не создается заново.
        """
        data = self._load(session_id)
        if data is None:
            raise NotFoundError("session")
        data["login"] = login
        try:
            updated = self.r.set(
                self._key(session_id), json.dumps(data), keepttl=True, xx=True
            )
        except RedisError as e:
            record_store_error("session", "set")
            raise StoreUnavailableError("session", f"Failed to update session: {e}") from e
        if not updated:
            raise NotFoundError("session")

    def kill_session(self, session_id: str) -> None:
        """Удаление сессии. Удаление несуществующей сессии не ошибка."""
        try:
            self.r.delete(self._key(session_id))
        except RedisError as e:
            record_store_error("session", "delete")
            raise StoreUnavailableError("session", f"Failed to delete session: {e}") from e


def get_session_manager() -> SessionManager:
    """Dependency для получения менеджера сессий."""
    return SessionManager(get_session_redis())
