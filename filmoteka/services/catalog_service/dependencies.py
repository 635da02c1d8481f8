"""
Dependencies для Catalog Service.
"""

import logging
from typing import Optional, List
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from filmoteka.config.database import get_db
from filmoteka.shared.dependencies import get_session_id
from filmoteka.shared.exceptions import (
    AuthenticationError, NotFoundError, StoreUnavailableError, ValidationError
)
from filmoteka.shared.schemas import MAX_DB_INT, PageParams
from filmoteka.shared.sessions import SessionManager, get_session_manager

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 8
MAX_PAGE_SIZE = 100


def get_current_user_id_optional(
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
) -> Optional[int]:
    """
    Dependency для получения ID текущего пользователя (опционально).

    Возвращает None без cookie, для неизвестной сессии и при ошибке
    хранилища (она логируется).
    """
    if session_id is None:
        return None

    try:
        return sessions.get_user_id(session_id, db)
    except NotFoundError:
        return None
    except StoreUnavailableError as e:
        logger.error(f"Failed to resolve session: {e.message}", extra={"operation": "auth_check"})
        return None


def get_current_user_id(
    user_id: Optional[int] = Depends(get_current_user_id_optional)
) -> int:
    """
    Dependency для получения ID текущего пользователя.

    Raises:
        AuthenticationError: Если пользователь не аутентифицирован
    """
    if user_id is None:
        raise AuthenticationError("Authentication required")
    return user_id


def _positive_int(raw: Optional[str], default: int, maximum: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if 0 < value <= maximum else default


def page_params(size_param: str):
    """
    Dependency фабрика для параметров пагинации.

    Непарсящиеся, неположительные и слишком большие значения заменяются
    значениями по умолчанию (страница 1, 8 элементов). Размер страницы
    ограничен MAX_PAGE_SIZE.

    Args:
        size_param: Имя query параметра с размером страницы
    """
    def get_page_params(request: Request) -> PageParams:
        return PageParams(
            page=_positive_int(request.query_params.get("page"), DEFAULT_PAGE, MAX_DB_INT),
            per_page=_positive_int(
                request.query_params.get(size_param), DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
            )
        )

    return get_page_params


get_pagination_params = page_params("per_page")
get_collection_page_params = page_params("page_size")


def parse_id_list(raw: Optional[str], field: str) -> List[int]:
    """
    Разбор списка ID вида "1,2,3" из формы.

    Raises:
        ValidationError: Пустой список или элемент не является
            положительным числом
    """
    parts = [part.strip() for part in (raw or "").split(",")]
    parts = [part for part in parts if part]
    if not parts:
        raise ValidationError(f"Field {field} must list at least one id")

    ids = []
    for part in parts:
        if not (part.isascii() and part.isdigit()) or not 0 < int(part) <= MAX_DB_INT:
            raise ValidationError(f"Field {field} contains malformed id {part!r}")
        ids.append(int(part))
    return ids
