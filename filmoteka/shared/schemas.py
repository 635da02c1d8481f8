from pydantic import BaseModel, Field
from typing import Optional, Any, Dict
from datetime import datetime
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Верхняя граница INTEGER в PostgreSQL и ID, которые принимает API
MAX_DB_INT = 2**31 - 1


class PageParams(BaseModel):
    """
    Параметры LIMIT/OFFSET пагинации.

    Attributes:
        page: Номер страницы (начинается с 1)
        per_page: Количество элементов на странице
    """
    page: int = Field(ge=1, default=1)
    per_page: int = Field(ge=1, default=8)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class HealthCheck(BaseModel):
    """
    Схема для health check endpoints.

    Attributes:
        status: Статус сервиса
        service: Название сервиса
        version: Версия сервиса
        timestamp: Время проверки
        dependencies: Статус зависимостей
    """
    status: str
    service: str
    version: str = "1.0.0"
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    dependencies: Optional[Dict[str, Any]] = None


def envelope_response(
    status_code: int = 200,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """
    Формирование JSON ответа в виде {"status": ..., "body": ...}.

    Единая обертка всех ответов обоих сервисов: status совпадает со
    статусом ответа, body равен null при ошибке.

    Args:
        status_code: HTTP статус (он же поле status)
        body: Данные ответа
        headers: Дополнительные заголовки
    """
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "body": jsonable_encoder(body)},
        headers=headers
    )
