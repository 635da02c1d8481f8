"""
Общие dependencies для обоих сервисов.
"""

import logging
from typing import Optional, Type, TypeVar

from fastapi import Cookie, Request
from pydantic import BaseModel, ValidationError as PydanticValidationError

from filmoteka.config.settings import settings
from filmoteka.shared.exceptions import ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def json_body(model: Type[M]):
    """
    Dependency фабрика для разбора JSON тела запроса.

    Тело разбирается dependency, а не параметром обработчика, чтобы
    проверки шли в порядке объявления: CSRF раньше тела.

    Args:
        model: Pydantic модель тела

    Returns:
        Dependency функция
    """
    async def parse_body(request: Request) -> M:
        raw = await request.body()
        try:
            return model.model_validate_json(raw)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Malformed {model.__name__} body",
                errors=e.errors(include_url=False, include_context=False)
            ) from e

    return parse_body


def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME)
) -> Optional[str]:
    """Значение cookie сессии, если она пришла."""
    return session_id or None


def get_client_info(request: Request) -> dict:
    """
    Dependency для получения информации о клиенте.

    Returns:
        Dict с информацией о клиенте
    """
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "origin": request.headers.get("origin")
    }
