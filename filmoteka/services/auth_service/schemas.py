"""
Pydantic схемы для Auth Service.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class SigninRequest(BaseModel):
    """Схема для входа пользователя."""
    login: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class SignupRequest(BaseModel):
    """Схема для регистрации пользователя."""
    model_config = ConfigDict(populate_by_name=True)

    login: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=100)
    name: str = Field("", max_length=255)
    birth_date: str = Field("", alias="birthDate", max_length=64)
    email: str = Field(..., max_length=255)

    @field_validator('login')
    @classmethod
    def login_not_blank(cls, v):
        """Логин не может состоять из одних пробелов."""
        if not v.strip():
            raise ValueError('Login cannot be blank')
        return v


class AuthCheckResponse(BaseModel):
    """Ответ /authcheck."""
    login: str
    role: str


class ProfileResponse(BaseModel):
    """Данные профиля для страницы настроек."""
    model_config = ConfigDict(populate_by_name=True)

    email: str
    name: Optional[str] = None
    login: str
    photo: Optional[str] = None
    birth_date: Optional[str] = Field(None, alias="birthDate")


class ProfileUpdate(BaseModel):
    """Изменения профиля из multipart формы; None означает "не менять"."""
    email: Optional[str] = None
    login: Optional[str] = None
    birth_date: Optional[str] = None
    password: Optional[str] = None
    photo: Optional[str] = None
