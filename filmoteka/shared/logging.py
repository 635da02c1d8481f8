"""
Конфигурация логирования для обоих сервисов.
Используется стандартный Python logging с ротацией файлов.
"""

import logging
import sys
import json
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from datetime import datetime
from typing import Dict, Any, Optional
import os

from filmoteka.config.settings import settings

# Стандартные атрибуты LogRecord, которые не считаются контекстом
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Форматтер для вывода логов в JSON формате."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process_id": record.process,
            "thread_id": record.thread,
        }

        # Поля, переданные через extra=...
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        # Добавляем информацию об исключении
        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredFormatter(logging.Formatter):
    """Структурированный форматтер для читаемого вывода."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S,%f')[:-3]

        log_line = f"{timestamp} - {record.name} - {record.levelname} - {record.getMessage()}"

        extra_info = []
        if hasattr(record, 'operation'):
            extra_info.append(f"op={record.operation}")
        if hasattr(record, 'user_id'):
            extra_info.append(f"user_id={record.user_id}")
        if hasattr(record, 'login'):
            extra_info.append(f"login={record.login}")
        if hasattr(record, 'duration'):
            extra_info.append(f"duration={record.duration:.3f}s")

        if extra_info:
            log_line += f" [{' '.join(extra_info)}]"

        if record.exc_info:
            log_line += f"\n{self.formatException(record.exc_info)}"

        return log_line


class AuditFilter(logging.Filter):
    """Пропускает только записи аудита."""

    def filter(self, record: logging.LogRecord) -> bool:
        return bool(getattr(record, 'audit', False))


def setup_logging(service_name: Optional[str] = None):
    """
    Настройка логирования для сервиса.

    Args:
        service_name: Название сервиса (для именования файлов)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL))

    # Очищаем существующие хэндлеры
    root_logger.handlers.clear()

    # Консольный хэндлер (всегда включен)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    console_handler.setLevel(logging.INFO)
    root_logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        _add_file_handlers(root_logger, service_name or "application")

    # Устанавливаем уровни для сторонних библиотек
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "service": service_name or "unknown"
        }
    )


def _add_file_handlers(root_logger: logging.Logger, base_name: str):
    """Файловые хэндлеры: все логи, ошибки и аудит."""
    log_dir = settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    json_formatter = JSONFormatter()

    file_handler = RotatingFileHandler(
        filename=f"{log_dir}/{base_name}.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding='utf-8'
    )
    file_handler.setFormatter(json_formatter)
    file_handler.setLevel(logging.DEBUG)

    error_handler = RotatingFileHandler(
        filename=f"{log_dir}/{base_name}.error.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=10,
        encoding='utf-8'
    )
    error_handler.setFormatter(json_formatter)
    error_handler.setLevel(logging.ERROR)

    audit_handler = TimedRotatingFileHandler(
        filename=f"{log_dir}/{base_name}.audit.log",
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8'
    )
    audit_handler.setFormatter(json_formatter)
    audit_handler.setLevel(logging.INFO)
    audit_handler.addFilter(AuditFilter())

    root_logger.addHandler(file_handler)
    root_logger.addHandler(error_handler)
    root_logger.addHandler(audit_handler)


class RequestLogger:
    """Логирование аудиторских событий (вход, регистрация, правка профиля)."""

    def __init__(self, logger_name: str = "audit"):
        self.logger = logging.getLogger(logger_name)

    def log_audit(
        self,
        action: str,
        login: Optional[str] = None,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """Логирование аудиторских событий."""
        actor = login if login is not None else user_id
        self.logger.info(
            f"Audit: {action} by {actor if actor is not None else 'anonymous'}",
            extra={
                "audit": True,
                "action": action,
                "login": login,
                "user_id": user_id,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "details": details or {},
                "event": "audit_event"
            }
        )


# Глобальный инстанс для аудита
request_logger = RequestLogger()
