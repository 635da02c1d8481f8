"""
Метрики Prometheus для мониторинга сервисов.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.registry import REGISTRY
from fastapi import FastAPI, Request, Response
from typing import Callable
import time
import logging

logger = logging.getLogger(__name__)

# ====== HTTP метрики ======

# Количество обращений к endpoint (по статусу ответа и пути)
HTTP_HITS_TOTAL = Counter(
    'http_hits_total',
    'Total number of HTTP requests',
    ['service', 'status', 'path']
)

# Время обработки запроса
HTTP_REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['service', 'status', 'path'],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0)
)

# ====== Бизнес метрики ======

# События пользователей (вход, избранное, оценки)
USER_EVENTS_TOTAL = Counter(
    'user_events_total',
    'Total number of user events',
    ['event_type']
)

# ====== Метрики хранилищ ======

# Запросы к базе данных
DATABASE_QUERIES_TOTAL = Counter(
    'database_queries_total',
    'Total number of database queries',
    ['query_type', 'table']
)

# Время выполнения запросов
DATABASE_QUERY_DURATION = Histogram(
    'database_query_duration_seconds',
    'Database query duration in seconds',
    ['query_type', 'table'],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0)
)

# Ошибки базы данных
DATABASE_ERRORS_TOTAL = Counter(
    'database_errors_total',
    'Total number of database errors',
    ['query_type', 'table']
)

# Ошибки хранилищ сессий и CSRF токенов
STORE_ERRORS_TOTAL = Counter(
    'store_errors_total',
    'Total number of key-value store errors',
    ['store', 'operation']
)


def setup_metrics(app: FastAPI, service_name: str):
    """
    Настройка метрик для FastAPI приложения.

    Args:
        app: FastAPI приложение
        service_name: Название сервиса (значение метки service)
    """

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next: Callable):
        """
        Middleware для сбора метрик HTTP запросов.
        Статус берется из ответа, который вернул обработчик.
        """
        path = request.url.path
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            _observe(service_name, 500, path, duration)
            logger.error(
                f"Request failed: {request.method} {path} "
                f"duration={duration:.3f}s error={str(e)}"
            )
            raise

        duration = time.time() - start_time
        _observe(service_name, response.status_code, path, duration)

        logger.debug(
            f"Request metrics: {request.method} {path} "
            f"status={response.status_code} duration={duration:.3f}s"
        )
        return response

    @app.get("/metrics", include_in_schema=False)
    async def metrics_endpoint():
        """
        Endpoint для получения метрик в формате Prometheus.
        """
        return Response(
            content=generate_latest(REGISTRY),
            media_type=CONTENT_TYPE_LATEST
        )


def _observe(service_name: str, status: int, path: str, duration: float):
    """Запись времени и количества обращений."""
    HTTP_REQUEST_DURATION.labels(
        service=service_name,
        status=str(status),
        path=path
    ).observe(duration)

    HTTP_HITS_TOTAL.labels(
        service=service_name,
        status=str(status),
        path=path
    ).inc()


def record_user_event(event_type: str):
    """
    Запись события пользователя.

    Args:
        event_type: Тип события
    """
    USER_EVENTS_TOTAL.labels(event_type=event_type).inc()


def record_database_query(
    query_type: str,
    table: str,
    duration: float,
    success: bool = True
):
    """
    Запись запроса к базе данных.

    Args:
        query_type: Тип запроса
        table: Таблица
        duration: Время выполнения
        success: Успешность запроса
    """
    DATABASE_QUERIES_TOTAL.labels(
        query_type=query_type,
        table=table
    ).inc()

    DATABASE_QUERY_DURATION.labels(
        query_type=query_type,
        table=table
    ).observe(duration)

    if not success:
        DATABASE_ERRORS_TOTAL.labels(
            query_type=query_type,
            table=table
        ).inc()


def record_store_error(store: str, operation: str):
    """
    Запись ошибки Redis хранилища.

    Args:
        store: Хранилище (session, csrf)
        operation: Операция (get, set, delete, exists)
    """
    STORE_ERRORS_TOTAL.labels(store=store, operation=operation).inc()
