"""
Модели базы данных для Catalog Service.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Float, DateTime,
    ForeignKey, Table, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from filmoteka.config.database import Base
from filmoteka.services.auth_service.models import User  # noqa: F401  таблица users


# ====== Association tables ======

film_genre_association = Table(
    'film_genres',
    Base.metadata,
    Column('film_id', Integer, ForeignKey('films.id', ondelete="CASCADE"), primary_key=True),
    Column('genre_id', Integer, ForeignKey('genres.id', ondelete="CASCADE"), primary_key=True)
)

film_actor_association = Table(
    'film_actors',
    Base.metadata,
    Column('film_id', Integer, ForeignKey('films.id', ondelete="CASCADE"), primary_key=True),
    Column('actor_id', Integer, ForeignKey('actors.id', ondelete="CASCADE"), primary_key=True)
)


# ====== Main models ======

class Genre(Base):
    """
    Модель жанра (подборки).

    Attributes:
        id: ID жанра
        title: Название жанра
    """

    __tablename__ = "genres"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), unique=True, nullable=False)

    films = relationship("Film", secondary=film_genre_association, back_populates="genres")


class Actor(Base):
    """
    Модель актера.

    Attributes:
        id: ID актера
        name: Имя
        birth_date: Дата рождения (YYYY-MM-DD)
        country: Страна
        info: Биография
        photo: Путь к фотографии
        career: Профессии через запятую
    """

    __tablename__ = "actors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    birth_date = Column(String(64))
    country = Column(String(100))
    info = Column(Text)
    photo = Column(String(500))
    career = Column(String(255))

    films = relationship("Film", secondary=film_actor_association, back_populates="actors")


class Film(Base):
    """
    Модель фильма.

    Attributes:
        id: ID фильма
        title: Название
        info: Описание
        release_date: Дата выхода (YYYY-MM-DD)
        country: Страна производства
        poster: Путь к постеру
        rating: Средняя оценка пользователей
        rating_count: Количество оценок
        mpaa: Возрастной рейтинг MPAA
    """

    __tablename__ = "films"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    info = Column(Text)
    release_date = Column(String(10), index=True)
    country = Column(String(100))
    poster = Column(String(500))
    rating = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    mpaa = Column(String(10))

    genres = relationship("Genre", secondary=film_genre_association, back_populates="films")
    actors = relationship("Actor", secondary=film_actor_association, back_populates="films")


class FavoriteFilm(Base):
    """Фильм в избранном пользователя."""

    __tablename__ = "favorites_films"
    __table_args__ = (
        UniqueConstraint('user_id', 'film_id', name='uq_favorites_films_user_film'),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    film_id = Column(Integer, ForeignKey('films.id', ondelete="CASCADE"), nullable=False)
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    film = relationship("Film")


class FavoriteActor(Base):
    """Актер в избранном пользователя."""

    __tablename__ = "favorites_actors"
    __table_args__ = (
        UniqueConstraint('user_id', 'actor_id', name='uq_favorites_actors_user_actor'),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey('actors.id', ondelete="CASCADE"), nullable=False)
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    actor = relationship("Actor")


class Rating(Base):
    """
    Оценка фильма пользователем.

    Одна оценка на пару (пользователь, фильм), повторная не перезаписывает
    первую.
    """

    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint('user_id', 'film_id', name='uq_ratings_user_film'),
        CheckConstraint('score >= 1 AND score <= 10', name='ck_ratings_score_range'),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    film_id = Column(Integer, ForeignKey('films.id', ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
