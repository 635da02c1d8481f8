"""
Кастомные исключения сервисов фильмотеки.
Все исключения наследуются от ServiceException.
"""

import logging
from typing import Optional, Dict, Any, List
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .schemas import envelope_response

logger = logging.getLogger(__name__)


class ServiceException(Exception):
    """
    Базовое исключение для всех сервисов.

    Attributes:
        message: Сообщение об ошибке (только для логов, клиенту не отдается)
        code: Уникальный код ошибки
        status_code: HTTP статус код
        details: Дополнительные детали ошибки
        headers: Заголовки, которые нужно выставить в ответе
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.message = message
        self.code = code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers
        super().__init__(self.message)


class ValidationError(ServiceException):
    """Некорректные входные данные (JSON, форма, параметры)."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        code: str = "VALIDATION_ERROR"
    ):
        details = {"errors": errors or []}
        super().__init__(message, code, status.HTTP_400_BAD_REQUEST, details)


class InvalidEmailError(ValidationError):
    """Email не прошел проверку при регистрации или редактировании профиля."""

    def __init__(self, email: str):
        super().__init__(f"Invalid email: {email}", code="INVALID_EMAIL")


class AuthenticationError(ServiceException):
    """Нет сессии или сессия недействительна."""

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTHENTICATION_ERROR"
    ):
        super().__init__(message, code, status.HTTP_401_UNAUTHORIZED)


class CsrfInvalidError(ServiceException):
    """Отсутствующий или просроченный CSRF токен."""

    def __init__(self, message: str = "CSRF token is missing or expired"):
        super().__init__(
            message,
            "CSRF_INVALID",
            status.HTTP_412_PRECONDITION_FAILED,
            headers={"X-CSRF-Token": "null"}
        )


class NotFoundError(ServiceException):
    """Ресурс не найден."""

    def __init__(
        self,
        resource: str,
        resource_id: Optional[Any] = None,
        code: str = "NOT_FOUND"
    ):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with id {resource_id} not found"

        details = {"resource": resource, "resource_id": resource_id}
        super().__init__(message, code, status.HTTP_404_NOT_FOUND, details)


class ConflictError(ServiceException):
    """Конфликт (логин занят, пароль не изменился)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        code: str = "CONFLICT"
    ):
        super().__init__(message, code, status.HTTP_409_CONFLICT)


class FoundFavoriteError(ServiceException):
    """Повторное добавление в избранное или повторная оценка фильма."""

    def __init__(self, message: str = "Already exists", code: str = "FOUND_FAVORITE"):
        super().__init__(message, code, status.HTTP_406_NOT_ACCEPTABLE)


class StoreUnavailableError(ServiceException):
    """Ошибка ввода-вывода хранилища (Redis, SQL)."""

    def __init__(
        self,
        store: str,
        message: Optional[str] = None,
        code: str = "STORE_UNAVAILABLE"
    ):
        message = message or f"{store} store is unavailable"
        details = {"store": store}
        super().__init__(message, code, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


class DatabaseError(StoreUnavailableError):
    """Ошибка базы данных."""

    def __init__(
        self,
        message: str = "Database error",
        code: str = "DATABASE_ERROR"
    ):
        super().__init__("sql", message, code)


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Регистрация обработчиков исключений для FastAPI приложения.
    Любая ошибка превращается в конверт {"status": <код>, "body": null}.

    Args:
        app: FastAPI приложение
    """

    @app.exception_handler(ServiceException)
    async def service_exception_handler(request: Request, exc: ServiceException):
        """Обработчик кастомных исключений."""
        if exc.status_code >= 500:
            logger.error(
                f"Service exception on {request.url.path}: {exc.message}",
                extra={"code": exc.code}
            )
        else:
            logger.info(
                f"Service exception on {request.url.path}: {exc.message}",
                extra={"code": exc.code}
            )
        return envelope_response(exc.status_code, None, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Некорректные параметры, тело или форма запроса."""
        logger.info(f"Bad request on {request.url.path}: {exc.errors()}")
        return envelope_response(status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Обработчик HTTP исключений (404 маршрута, 405 метода)."""
        logger.info(f"HTTP exception on {request.url.path}: {exc.detail}")
        return envelope_response(exc.status_code, None, exc.headers)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Обработчик непредвиденных исключений."""
        logger.exception(f"Unexpected error on {request.url.path}: {str(exc)}")
        return envelope_response(status.HTTP_500_INTERNAL_SERVER_ERROR)
