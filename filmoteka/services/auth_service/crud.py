"""
CRUD операции для Auth Service.
"""

import logging
import re
from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from passlib.context import CryptContext

from . import models, schemas
from filmoteka.shared.exceptions import (
    ConflictError, DatabaseError, InvalidEmailError, NotFoundError
)
from filmoteka.monitoring.metrics import record_database_query

logger = logging.getLogger(__name__)

# Контекст для хэширования паролей
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Разрешительный шаблон в духе RFC 5322 (как у браузерного type=email)
EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


# ====== Вспомогательные функции ======

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверка пароля."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Хэширование пароля."""
    return pwd_context.hash(password)


def validate_email(email: str) -> str:
    """Проверка email; единственная проверка с отдельным кодом ошибки."""
    if not email or not EMAIL_REGEX.match(email):
        raise InvalidEmailError(email)
    return email


# ====== CRUD операции для пользователей ======

def get_user_by_login(db: Session, login: str) -> Optional[models.User]:
    """Получение пользователя по логину."""
    start_time = datetime.now()

    try:
        user = db.query(models.User).filter(models.User.login == login).first()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "users", duration, True)

        return user

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "users", duration, False)
        logger.error(f"Error getting user {login}: {e}", extra={"operation": "get_user_by_login"})
        raise DatabaseError(f"Failed to get user: {str(e)}") from e


def find_user_by_login(db: Session, login: str) -> bool:
    """Существует ли пользователь с таким логином."""
    return get_user_by_login(db, login) is not None


def find_user_account(db: Session, login: str, password: str) -> Optional[models.User]:
    """
    Проверка учетных данных.

    Returns:
        Пользователь, если логин существует и пароль совпадает, иначе None
    """
    user = get_user_by_login(db, login)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_user_role(db: Session, login: str) -> models.UserRole:
    """Роль пользователя по логину."""
    user = get_user_by_login(db, login)
    if user is None:
        raise NotFoundError("user", login)
    return user.role


def create_user(db: Session, user: schemas.SignupRequest) -> models.User:
    """Создание нового пользователя."""
    start_time = datetime.now()

    # Проверка существования пользователя
    if find_user_by_login(db, user.login):
        raise ConflictError(f"User with login {user.login} already exists")

    validate_email(user.email)

    try:
        db_user = models.User(
            login=user.login,
            password_hash=get_password_hash(user.password),
            name=user.name,
            email=user.email,
            birth_date=user.birth_date,
            role=models.UserRole.REGULAR
        )

        db.add(db_user)
        db.commit()
        db.refresh(db_user)

    except IntegrityError as e:
        # Параллельная регистрация с тем же логином
        db.rollback()
        raise ConflictError(f"User with login {user.login} already exists") from e

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("insert", "users", duration, False)
        logger.error(f"Error creating user {user.login}: {e}", extra={"operation": "signup"})
        raise DatabaseError(f"Failed to create user: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("insert", "users", duration, True)

    logger.info(f"User created: {db_user.login} ({db_user.id})")
    return db_user


def check_password(user: models.User, password: Optional[str]) -> bool:
    """Совпадает ли присланный пароль с текущим."""
    if not password:
        return False
    return verify_password(password, user.password_hash)


def check_profile_update(db: Session, prev_login: str, update: schemas.ProfileUpdate) -> models.User:
    """
    Проверка изменений профиля без записи в БД.

    Новый пароль должен отличаться от текущего, новый логин не должен
    принадлежать другому пользователю.

    Returns:
        Текущий пользователь
    """
    db_user = get_user_by_login(db, prev_login)
    if db_user is None:
        raise NotFoundError("user", prev_login)

    if update.password and check_password(db_user, update.password):
        raise ConflictError("New password must differ from the current one")

    if update.email:
        validate_email(update.email)

    if update.login and update.login != db_user.login:
        if find_user_by_login(db, update.login):
            raise ConflictError(f"User with login {update.login} already exists")

    return db_user


def edit_profile(db: Session, prev_login: str, update: schemas.ProfileUpdate) -> models.User:
    """
    Обновление профиля.

    Пустые поля не меняются.
    """
    start_time = datetime.now()

    db_user = check_profile_update(db, prev_login, update)

    try:
        if update.login:
            db_user.login = update.login
        if update.email:
            db_user.email = update.email
        if update.birth_date:
            db_user.birth_date = update.birth_date
        if update.password:
            db_user.password_hash = get_password_hash(update.password)
        if update.photo:
            db_user.photo = update.photo

        db.commit()
        db.refresh(db_user)

    except IntegrityError as e:
        db.rollback()
        raise ConflictError(f"User with login {update.login} already exists") from e

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("update", "users", duration, False)
        logger.error(f"Error updating user {prev_login}: {e}", extra={"operation": "edit_profile"})
        raise DatabaseError(f"Failed to update user: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("update", "users", duration, True)

    logger.info(f"Profile updated: {prev_login} -> {db_user.login}")
    return db_user
