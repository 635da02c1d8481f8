"""
Основной файл для запуска сервисов фильмотеки.
Поддерживает запуск отдельного сервиса или обоих вместе.
"""

import sys
import os
import argparse
import logging
from multiprocessing import Process
import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

# Настройка базового логирования до импорта других модулей
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICES = {
    "auth-service": "filmoteka.services.auth_service.main:app",
    "catalog-service": "filmoteka.services.catalog_service.main:app",
}


class StartupError(Exception):
    """Сервис не может стартовать (конфигурация, недоступное хранилище)."""


def load_settings(config_path=None):
    """
    Загрузка конфигурации.

    Файл .env читается до первого импорта настроек, поэтому его значения
    попадают в объект settings.
    """
    if config_path:
        if not os.path.isfile(config_path):
            raise StartupError(f"Config file not found: {config_path}")
        load_dotenv(config_path, override=True)
        logger.info(f"Loaded configuration from {config_path}")
    else:
        load_dotenv()

    try:
        from filmoteka.config.settings import settings
    except PydanticValidationError as e:
        raise StartupError(f"Invalid configuration: {e}") from e
    return settings


def check_stores(service: str):
    """Проверка хранилищ, без которых сервис не работает."""
    from filmoteka.config.database import check_database_connection
    from filmoteka.shared.redis_client import (
        get_session_redis, get_csrf_redis, check_redis_connection
    )

    if not check_database_connection():
        raise StartupError("SQL store is unreachable")
    if not check_redis_connection(get_session_redis(), "session"):
        raise StartupError("Session store is unreachable")
    if service == "auth-service" and not check_redis_connection(get_csrf_redis(), "csrf"):
        raise StartupError("CSRF store is unreachable")


def run_service(service: str, config_path=None):
    """Запуск одного сервиса в текущем процессе."""
    settings = load_settings(config_path)

    from filmoteka.shared.logging import setup_logging
    setup_logging(service)

    check_stores(service)

    if service == "auth-service":
        host, port = settings.AUTH_SERVICE_HOST, settings.AUTH_SERVICE_PORT
    else:
        host, port = settings.CATALOG_SERVICE_HOST, settings.CATALOG_SERVICE_PORT

    logger.info(f"Starting {service} on {host}:{port}")

    uvicorn.run(
        SERVICES[service],
        host=host,
        port=port,
        timeout_keep_alive=settings.HTTP_TIMEOUT_KEEP_ALIVE,
        log_level="info",
        access_log=True
    )


def run_all_services(config_path=None):
    """Запуск обоих сервисов в отдельных процессах."""
    processes = []

    for service_name in SERVICES:
        logger.info(f"Starting {service_name}...")
        p = Process(target=_run_child, args=(service_name, config_path), daemon=True)
        p.start()
        processes.append((service_name, p))
        logger.info(f"{service_name} started with PID {p.pid}")

    # Ожидание завершения
    try:
        for service_name, p in processes:
            p.join()
    except KeyboardInterrupt:
        logger.info("Shutting down services...")
        for service_name, p in processes:
            if p.is_alive():
                p.terminate()
                p.join()
                logger.info(f"{service_name} terminated")

    logger.info("All services stopped")
    if any(p.exitcode not in (0, None, -15) for _, p in processes):
        raise StartupError("At least one service exited with an error")


def _run_child(service: str, config_path=None):
    try:
        run_service(service, config_path)
    except StartupError as e:
        logger.error(f"{service} failed to start: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(0)


def parse_arguments(argv=None):
    """Парсинг аргументов командной строки."""
    parser = argparse.ArgumentParser(
        description="Filmoteka - сервисы авторизации и каталога фильмов"
    )

    parser.add_argument(
        "--service",
        type=str,
        choices=["all", *SERVICES],
        default="all",
        help="Сервис для запуска (по умолчанию: оба)"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Путь к файлу конфигурации (.env)"
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Основная функция запуска. Возвращает код выхода."""
    args = parse_arguments(argv)

    try:
        if args.service == "all":
            run_all_services(args.config)
        else:
            run_service(args.service, args.config)
    except StartupError as e:
        logger.error(f"Startup failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
        return 0

    return 0


def run_auth():
    """Точка входа filmoteka-auth."""
    sys.exit(main(["--service", "auth-service", *sys.argv[1:]]))


def run_catalog():
    """Точка входа filmoteka-catalog."""
    sys.exit(main(["--service", "catalog-service", *sys.argv[1:]]))


if __name__ == "__main__":
    sys.exit(main())
