"""
Pydantic схемы для Catalog Service.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Annotated, Optional, List
from datetime import datetime

from filmoteka.shared.schemas import MAX_DB_INT


# ====== Схемы для ответов ======

class GenreResponse(BaseModel):
    """Жанр."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str


class ActorShort(BaseModel):
    """Краткая карточка актера."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    photo: Optional[str] = None
    country: Optional[str] = None


class FilmShort(BaseModel):
    """Карточка фильма для списков и результатов поиска."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    poster: Optional[str] = None
    rating: float = 0.0
    release_date: Optional[str] = None
    genres: List[GenreResponse] = []


class FilmDetail(FilmShort):
    """Страница фильма."""
    info: Optional[str] = None
    country: Optional[str] = None
    mpaa: Optional[str] = None
    rating_count: int = 0
    actors: List[ActorShort] = []


class ActorDetail(ActorShort):
    """Страница актера с его фильмами."""
    info: Optional[str] = None
    birth_date: Optional[str] = None
    career: Optional[str] = None
    films: List[FilmShort] = []


class FilmsPage(BaseModel):
    """Страница подборки фильмов."""
    page: int
    page_size: int
    total: int
    collection_name: str
    films: List[FilmShort] = []


class FilmsResponse(BaseModel):
    """Список фильмов; total равен длине списка."""
    films: List[FilmShort] = []
    total: int = 0


class ActorsResponse(BaseModel):
    """Список актеров; total равен длине списка."""
    actors: List[ActorShort] = []
    total: int = 0


# ====== Схемы для поиска ======

class FindFilmRequest(BaseModel):
    """
    Фильтры поиска фильмов. Пустой фильтр пропускает все фильмы,
    непустые объединяются через AND.
    """
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    date_from: str = Field("", alias="dateFrom")
    date_to: str = Field("", alias="dateTo")
    rating_from: Optional[float] = Field(None, alias="ratingFrom", ge=0.0, le=10.0)
    rating_to: Optional[float] = Field(None, alias="ratingTo", ge=0.0, le=10.0)
    mpaa: str = ""
    genres: List[Annotated[int, Field(ge=1, le=MAX_DB_INT)]] = []
    actors: List[str] = []

    @model_validator(mode="after")
    def validate_rating_range(self):
        """Валидация диапазона рейтинга."""
        if self.rating_from is not None and self.rating_to is not None:
            if self.rating_from > self.rating_to:
                raise ValueError('ratingFrom cannot be greater than ratingTo')
        return self


class FindActorRequest(BaseModel):
    """Фильтры поиска актеров."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    birth_date: str = Field("", alias="birthDate")
    films: List[str] = []
    career: List[str] = []
    country: str = ""


# ====== Оценки ======

class RatingRequest(BaseModel):
    """Оценка фильма."""
    model_config = ConfigDict(populate_by_name=True)

    film_id: int = Field(..., alias="filmId", ge=1, le=MAX_DB_INT)
    rating: int = Field(..., ge=1, le=10)


# ====== Календарь ======

class CalendarFilm(BaseModel):
    """Фильм в ячейке календаря."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    poster: Optional[str] = None


class CalendarDay(BaseModel):
    """День месяца с вышедшими фильмами."""
    day_number: int
    day_news: List[CalendarFilm] = []


class CalendarResponse(BaseModel):
    """Календарь релизов за месяц."""
    month_name: str
    month_text: str
    current_day: int
    days: List[CalendarDay] = []


# ====== Добавление фильма ======

class FilmCreate(BaseModel):
    """Данные нового фильма из multipart формы."""
    title: str = Field(..., min_length=1, max_length=255)
    info: str = ""
    release_date: str = ""
    country: str = ""
    mpaa: str = ""
    genre_ids: List[int] = Field(..., min_length=1)
    actor_ids: List[int] = Field(..., min_length=1)
    poster: Optional[str] = None

    @field_validator('title')
    @classmethod
    def title_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be blank')
        return v

    @field_validator('release_date')
    @classmethod
    def validate_release_date(cls, v):
        """Дата выхода хранится строкой YYYY-MM-DD, по ней строится календарь."""
        if v:
            return datetime.strptime(v, "%Y-%m-%d").strftime("%Y-%m-%d")
        return v
