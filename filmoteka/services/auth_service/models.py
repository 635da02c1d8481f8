"""
Модели базы данных для Auth Service.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from enum import Enum as PyEnum
from filmoteka.config.database import Base


class UserRole(PyEnum):
    """Роли пользователей."""
    REGULAR = "regular"
    MODERATOR = "moderator"


class User(Base):
    """
    Модель пользователя.

    Attributes:
        id: ID пользователя
        login: Логин (уникальный, чувствителен к регистру)
        password_hash: Хэш пароля (соль внутри хэша)
        name: Отображаемое имя
        email: Email
        birth_date: Дата рождения (строка в свободном формате)
        photo: Путь к аватару
        role: Роль пользователя
        created_at: Дата создания
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    login = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    name = Column(String(255))
    email = Column(String(255), nullable=False)
    birth_date = Column(String(64))
    photo = Column(String(500))

    role = Column(
        Enum(UserRole),
        default=UserRole.REGULAR,
        nullable=False
    )

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
