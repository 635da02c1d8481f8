"""
Основной файл Auth Service.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import FastAPI, Depends, File, Form, Header, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from filmoteka.config.database import get_db, engine, check_database_connection
from filmoteka.config.settings import settings
from filmoteka.shared.logging import setup_logging, request_logger
from filmoteka.shared.exceptions import (
    AuthenticationError, NotFoundError, StoreUnavailableError, ValidationError,
    setup_exception_handlers
)
from filmoteka.shared.schemas import HealthCheck, envelope_response
from filmoteka.shared.dependencies import json_body, get_session_id, get_client_info
from filmoteka.shared.redis_client import check_redis_connection
from filmoteka.shared.sessions import SessionManager, get_session_manager
from filmoteka.shared.storage import save_upload
from filmoteka.monitoring.metrics import setup_metrics, record_user_event

from . import schemas, crud
from .csrf import CSRF_HEADER, CsrfManager, get_csrf_manager, require_csrf_token
from .models import Base

SERVICE_NAME = "auth-service"
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Настройка логирования
setup_logging(SERVICE_NAME)
logger = logging.getLogger(__name__)

# Создание таблиц
Base.metadata.create_all(bind=engine)

# Создание приложения
app = FastAPI(
    title="Auth Service",
    description="Сервис авторизации фильмотеки",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# Настройка CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CSRF_HEADER],
)

# Настройка метрик
setup_metrics(app, SERVICE_NAME)

# Обработчики исключений
setup_exception_handlers(app)


def get_current_login(
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionManager = Depends(get_session_manager)
) -> str:
    """
    Dependency для получения логина владельца сессии.

    Raises:
        AuthenticationError: Нет cookie или сессия не найдена
    """
    if session_id is None:
        raise AuthenticationError("Missing session cookie")
    try:
        return sessions.get_user_name(session_id)
    except NotFoundError:
        raise AuthenticationError("Session not found or expired")


# ====== Health check ======

@app.get("/health")
def health_check(
    sessions: SessionManager = Depends(get_session_manager),
    csrf: CsrfManager = Depends(get_csrf_manager)
) -> HealthCheck:
    """
    Health check endpoint.
    Проверяет подключение к базе данных и хранилищам сессий и токенов.
    """
    dependencies_status = {
        "database": "healthy" if check_database_connection() else "unhealthy",
        "session_store": "healthy" if check_redis_connection(sessions.r, "session") else "unhealthy",
        "csrf_store": "healthy" if check_redis_connection(csrf.r, "csrf") else "unhealthy",
    }

    return HealthCheck(
        status="healthy" if all(v == "healthy" for v in dependencies_status.values()) else "degraded",
        service=SERVICE_NAME,
        version="1.0.0",
        dependencies=dependencies_status
    )


# ====== Authentication endpoints ======

@app.post("/signin", dependencies=[Depends(require_csrf_token)])
def signin(
    credentials: schemas.SigninRequest = Depends(json_body(schemas.SigninRequest)),
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
    client_info: dict = Depends(get_client_info)
):
    """
    Вход пользователя.

    При успехе создается сессия и выставляется cookie session_id.
    """
    user = crud.find_user_account(db, credentials.login, credentials.password)
    if user is None:
        logger.info(f"Failed signin attempt for {credentials.login}")
        raise AuthenticationError("Invalid login or password")

    session_id, expires_at = sessions.create_session(user.login)

    request_logger.log_audit(
        action="signin",
        login=user.login,
        user_id=user.id,
        details={"ip_address": client_info.get("ip_address")}
    )
    record_user_event("signin")

    response = envelope_response()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        expires=expires_at,
        path="/",
        httponly=True
    )
    return response


@app.post("/signup", dependencies=[Depends(require_csrf_token)])
def signup(
    user: schemas.SignupRequest = Depends(json_body(schemas.SignupRequest)),
    db: Session = Depends(get_db),
    client_info: dict = Depends(get_client_info)
):
    """
    Регистрация нового пользователя.

    Занятый логин дает 409, некорректный email дает 400.
    """
    db_user = crud.create_user(db, user)

    request_logger.log_audit(
        action="signup",
        login=db_user.login,
        user_id=db_user.id,
        details={"ip_address": client_info.get("ip_address")}
    )
    record_user_event("signup")

    return envelope_response()


@app.api_route("/logout", methods=ALL_METHODS)
def logout(
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionManager = Depends(get_session_manager)
):
    """Завершение сессии и сброс cookie."""
    if session_id is None:
        raise AuthenticationError("Missing session cookie")
    try:
        login = sessions.get_user_name(session_id)
    except NotFoundError:
        raise AuthenticationError("No active session")

    sessions.kill_session(session_id)
    request_logger.log_audit(action="logout", login=login)

    response = envelope_response()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        expires=datetime.now(timezone.utc) - timedelta(days=1),
        path="/",
        httponly=True
    )
    return response


@app.api_route("/authcheck", methods=ALL_METHODS)
def authcheck(
    login: str = Depends(get_current_login),
    db: Session = Depends(get_db)
):
    """Проверка авторизации: логин и роль владельца сессии."""
    try:
        role = crud.get_user_role(db, login)
    except NotFoundError:
        raise AuthenticationError(f"Session owner {login} no longer exists")

    body = schemas.AuthCheckResponse(login=login, role=role.value)
    return envelope_response(body=body)


@app.api_route("/api/v1/csrf", methods=ALL_METHODS)
def get_csrf_token(
    x_csrf_token: Optional[str] = Header(None, alias=CSRF_HEADER),
    csrf: CsrfManager = Depends(get_csrf_manager)
):
    """
    Выдача CSRF токена в заголовке X-CSRF-Token.

    Действующий токен из запроса возвращается как есть.
    """
    try:
        if csrf.check_csrf_token(x_csrf_token):
            token = x_csrf_token
        else:
            token = csrf.create_csrf_token()
    except StoreUnavailableError as e:
        logger.error(f"CSRF store error: {e.message}", extra={"operation": "get_csrf_token"})
        return envelope_response(500, headers={CSRF_HEADER: "null"})

    return envelope_response(headers={CSRF_HEADER: token})


# ====== Profile endpoints ======

@app.get("/api/v1/settings")
def get_profile(
    login: str = Depends(get_current_login),
    db: Session = Depends(get_db)
):
    """Данные профиля текущего пользователя."""
    user = crud.get_user_by_login(db, login)
    if user is None:
        raise AuthenticationError(f"Session owner {login} no longer exists")

    body = schemas.ProfileResponse(
        email=user.email,
        name=user.name,
        login=user.login,
        photo=user.photo,
        birth_date=user.birth_date
    )
    return envelope_response(body=body.model_dump(by_alias=True))


@app.post("/api/v1/settings")
def edit_profile(
    request: Request,
    login: str = Depends(get_current_login),
    session_id: Optional[str] = Depends(get_session_id),
    email: Optional[str] = Form(None),
    new_login: Optional[str] = Form(None, alias="login"),
    birthday: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager)
):
    """
    Изменение профиля (multipart/form-data).

    Пустые поля не меняются. Аватар сохраняется в AVATAR_DIR только
    после проверки остальных полей.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(FORM_CONTENT_TYPES):
        raise ValidationError("Profile edit expects form data")

    update = schemas.ProfileUpdate(
        email=email or None,
        login=new_login or None,
        birth_date=birthday or None,
        password=password or None
    )

    crud.check_profile_update(db, login, update)

    if photo is not None and photo.filename:
        update.photo = save_upload(photo, settings.AVATAR_DIR, settings.AVATAR_URL_PREFIX)

    user = crud.edit_profile(db, login, update)

    if user.login != login:
        try:
            sessions.rebind_session(session_id, user.login)
        except (NotFoundError, StoreUnavailableError) as e:
            logger.error(
                f"Profile of {login} saved but session was not rebound to {user.login}: {e}",
                extra={"operation": "edit_profile"}
            )

    request_logger.log_audit(
        action="edit_profile",
        login=user.login,
        user_id=user.id,
        resource_type="user",
        resource_id=str(user.id),
        details={
            "changed": [
                name for name, value in update.model_dump().items() if value
            ]
        }
    )

    return envelope_response()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "filmoteka.services.auth_service.main:app",
        host=settings.AUTH_SERVICE_HOST,
        port=settings.AUTH_SERVICE_PORT,
        timeout_keep_alive=settings.HTTP_TIMEOUT_KEEP_ALIVE
    )
