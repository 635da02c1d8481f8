"""
CRUD операции для Catalog Service.
"""

import calendar
import logging
from typing import Optional, List, Tuple
from datetime import datetime, date
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import models, schemas
from filmoteka.shared.exceptions import (
    NotFoundError, FoundFavoriteError, DatabaseError
)
from filmoteka.monitoring.metrics import record_database_query, record_user_event

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "Январь", "Февраль", "Март", "Апрель", "Май", "Июнь",
    "Июль", "Август", "Сентябрь", "Октябрь", "Ноябрь", "Декабрь"
]
ALL_FILMS_COLLECTION = "Все фильмы"
CALENDAR_TEXT = "Релизы месяца"


# ====== Вспомогательные функции ======

def _get_film_query(db: Session):
    """Базовый запрос для фильмов (жанры подгружаются сразу)."""
    return db.query(models.Film).options(selectinload(models.Film.genres))


def _like(value: str) -> str:
    return f"%{value}%"


def _film_for_update(db: Session, film_id: int):
    """Запрос строки фильма с блокировкой до конца транзакции."""
    return db.query(models.Film).filter(models.Film.id == film_id).with_for_update()


# ====== CRUD операции для жанров ======

def get_genre(db: Session, genre_id: int) -> Optional[models.Genre]:
    """Получение жанра по ID."""
    start_time = datetime.now()

    try:
        genre = db.query(models.Genre).filter(models.Genre.id == genre_id).first()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "genres", duration, True)

        return genre

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "genres", duration, False)
        logger.error(f"Error getting genre {genre_id}: {e}", extra={"operation": "get_genre"})
        raise DatabaseError(f"Failed to get genre: {str(e)}") from e


# ====== CRUD операции для фильмов ======

def get_film(db: Session, film_id: int) -> Optional[models.Film]:
    """Получение фильма по ID."""
    start_time = datetime.now()

    try:
        film = _get_film_query(db).options(
            selectinload(models.Film.actors)
        ).filter(models.Film.id == film_id).first()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "films", duration, True)

        return film

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "films", duration, False)
        logger.error(f"Error getting film {film_id}: {e}", extra={"operation": "get_film"})
        raise DatabaseError(f"Failed to get film: {str(e)}") from e


def get_films(
    db: Session,
    genre_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 8
) -> Tuple[str, List[models.Film]]:
    """
    Страница подборки фильмов.

    Args:
        genre_id: ID жанра; None или 0 означает все фильмы
        skip: Смещение
        limit: Размер страницы

    Returns:
        Название подборки и фильмы страницы
    """
    collection_name = ALL_FILMS_COLLECTION
    if genre_id:
        genre = get_genre(db, genre_id)
        if genre is None:
            raise NotFoundError("genre", genre_id)
        collection_name = genre.title

    start_time = datetime.now()

    try:
        query = _get_film_query(db)
        if genre_id:
            query = query.filter(models.Film.genres.any(models.Genre.id == genre_id))

        films = query.order_by(
            desc(models.Film.rating), models.Film.id
        ).offset(skip).limit(limit).all()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "films", duration, True)

        return collection_name, films

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "films", duration, False)
        logger.error(f"Error getting films: {e}", extra={"operation": "films"})
        raise DatabaseError(f"Failed to get films: {str(e)}") from e


def find_films(db: Session, filters: schemas.FindFilmRequest) -> List[models.Film]:
    """
    Поиск фильмов по фильтрам.

    Пустые фильтры не ограничивают выборку. Для списков (жанры, актеры)
    достаточно совпадения с любым элементом списка.
    """
    start_time = datetime.now()

    try:
        query = _get_film_query(db)

        if filters.title:
            query = query.filter(models.Film.title.ilike(_like(filters.title)))
        if filters.date_from:
            query = query.filter(models.Film.release_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(models.Film.release_date <= filters.date_to)
        if filters.rating_from is not None:
            query = query.filter(models.Film.rating >= filters.rating_from)
        if filters.rating_to is not None:
            query = query.filter(models.Film.rating <= filters.rating_to)
        if filters.mpaa:
            query = query.filter(models.Film.mpaa == filters.mpaa)
        if filters.genres:
            query = query.filter(
                models.Film.genres.any(models.Genre.id.in_(filters.genres))
            )
        if filters.actors:
            query = query.filter(
                models.Film.actors.any(
                    or_(*[models.Actor.name.ilike(_like(name)) for name in filters.actors])
                )
            )

        films = query.order_by(desc(models.Film.rating), models.Film.id).all()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("search", "films", duration, True)

        return films

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("search", "films", duration, False)
        logger.error(f"Error searching films: {e}", extra={"operation": "find_film"})
        raise DatabaseError(f"Failed to search films: {str(e)}") from e


def create_film(db: Session, film: schemas.FilmCreate) -> models.Film:
    """Добавление фильма с жанрами и актерами."""
    start_time = datetime.now()

    try:
        genres = db.query(models.Genre).filter(models.Genre.id.in_(film.genre_ids)).all()
        missing = set(film.genre_ids) - {g.id for g in genres}
        if missing:
            raise NotFoundError("genre", sorted(missing)[0])

        actors = db.query(models.Actor).filter(models.Actor.id.in_(film.actor_ids)).all()
        missing = set(film.actor_ids) - {a.id for a in actors}
        if missing:
            raise NotFoundError("actor", sorted(missing)[0])

        db_film = models.Film(
            title=film.title,
            info=film.info,
            release_date=film.release_date,
            country=film.country,
            mpaa=film.mpaa or None,
            poster=film.poster,
            genres=genres,
            actors=actors
        )

        db.add(db_film)
        db.commit()
        db.refresh(db_film)

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("insert", "films", duration, False)
        logger.error(f"Error creating film: {e}", extra={"operation": "add_film"})
        raise DatabaseError(f"Failed to create film: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("insert", "films", duration, True)

    logger.info(f"Film created: {db_film.title} ({db_film.id})")
    return db_film


# ====== CRUD операции для актеров ======

def get_actor(db: Session, actor_id: int) -> Optional[models.Actor]:
    """Получение актера по ID вместе с фильмами."""
    start_time = datetime.now()

    try:
        actor = db.query(models.Actor).options(
            selectinload(models.Actor.films).selectinload(models.Film.genres)
        ).filter(models.Actor.id == actor_id).first()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "actors", duration, True)

        return actor

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "actors", duration, False)
        logger.error(f"Error getting actor {actor_id}: {e}", extra={"operation": "get_actor"})
        raise DatabaseError(f"Failed to get actor: {str(e)}") from e


def find_actors(db: Session, filters: schemas.FindActorRequest) -> List[models.Actor]:
    """Поиск актеров по имени, дате рождения, фильмам, профессиям и стране."""
    start_time = datetime.now()

    try:
        query = db.query(models.Actor)

        if filters.name:
            query = query.filter(models.Actor.name.ilike(_like(filters.name)))
        if filters.birth_date:
            query = query.filter(models.Actor.birth_date == filters.birth_date)
        if filters.country:
            query = query.filter(models.Actor.country.ilike(_like(filters.country)))
        if filters.career:
            query = query.filter(
                or_(*[models.Actor.career.ilike(_like(c)) for c in filters.career])
            )
        if filters.films:
            query = query.filter(
                models.Actor.films.any(
                    or_(*[models.Film.title.ilike(_like(t)) for t in filters.films])
                )
            )

        actors = query.order_by(models.Actor.name, models.Actor.id).all()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("search", "actors", duration, True)

        return actors

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("search", "actors", duration, False)
        logger.error(f"Error searching actors: {e}", extra={"operation": "find_actor"})
        raise DatabaseError(f"Failed to search actors: {str(e)}") from e


# ====== Избранное ======

def add_favorite_film(db: Session, user_id: int, film_id: int) -> models.FavoriteFilm:
    """
    Добавление фильма в избранное.

    Повторное добавление упирается в UNIQUE(user_id, film_id) и дает
    FoundFavoriteError.
    """
    start_time = datetime.now()

    try:
        if db.query(models.Film.id).filter(models.Film.id == film_id).first() is None:
            raise NotFoundError("film", film_id)

        favorite = models.FavoriteFilm(user_id=user_id, film_id=film_id)
        db.add(favorite)
        db.commit()

    except IntegrityError as e:
        db.rollback()
        raise FoundFavoriteError(f"Film {film_id} already in favorites of user {user_id}") from e

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("insert", "favorites_films", duration, False)
        logger.error(f"Error adding favorite film: {e}", extra={"operation": "favorite_film_add"})
        raise DatabaseError(f"Failed to add favorite film: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("insert", "favorites_films", duration, True)
    record_user_event("favorite_film_added")

    logger.info(f"Film {film_id} added to favorites of user {user_id}")
    return favorite


def remove_favorite_film(db: Session, user_id: int, film_id: int) -> bool:
    """Удаление фильма из избранного. Отсутствие записи не ошибка."""
    start_time = datetime.now()

    try:
        deleted = db.query(models.FavoriteFilm).filter(
            models.FavoriteFilm.user_id == user_id,
            models.FavoriteFilm.film_id == film_id
        ).delete(synchronize_session=False)
        db.commit()

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("delete", "favorites_films", duration, False)
        logger.error(f"Error removing favorite film: {e}", extra={"operation": "favorite_film_remove"})
        raise DatabaseError(f"Failed to remove favorite film: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("delete", "favorites_films", duration, True)

    return deleted > 0


def get_favorite_films(
    db: Session,
    user_id: int,
    skip: int = 0,
    limit: int = 8
) -> List[models.Film]:
    """Избранные фильмы пользователя, новые сверху."""
    start_time = datetime.now()

    try:
        films = _get_film_query(db).join(
            models.FavoriteFilm, models.FavoriteFilm.film_id == models.Film.id
        ).filter(
            models.FavoriteFilm.user_id == user_id
        ).order_by(
            desc(models.FavoriteFilm.added_at), desc(models.FavoriteFilm.id)
        ).offset(skip).limit(limit).all()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "favorites_films", duration, True)

        return films

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "favorites_films", duration, False)
        logger.error(f"Error getting favorite films: {e}", extra={"operation": "favorite_films"})
        raise DatabaseError(f"Failed to get favorite films: {str(e)}") from e


def add_favorite_actor(db: Session, user_id: int, actor_id: int) -> models.FavoriteActor:
    """Добавление актера в избранное."""
    start_time = datetime.now()

    try:
        if db.query(models.Actor.id).filter(models.Actor.id == actor_id).first() is None:
            raise NotFoundError("actor", actor_id)

        favorite = models.FavoriteActor(user_id=user_id, actor_id=actor_id)
        db.add(favorite)
        db.commit()

    except IntegrityError as e:
        db.rollback()
        raise FoundFavoriteError(f"Actor {actor_id} already in favorites of user {user_id}") from e

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("insert", "favorites_actors", duration, False)
        logger.error(f"Error adding favorite actor: {e}", extra={"operation": "favorite_actor_add"})
        raise DatabaseError(f"Failed to add favorite actor: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("insert", "favorites_actors", duration, True)
    record_user_event("favorite_actor_added")

    logger.info(f"Actor {actor_id} added to favorites of user {user_id}")
    return favorite


def remove_favorite_actor(db: Session, user_id: int, actor_id: int) -> bool:
    """Удаление актера из избранного. Отсутствие записи не ошибка."""
    start_time = datetime.now()

    try:
        deleted = db.query(models.FavoriteActor).filter(
            models.FavoriteActor.user_id == user_id,
            models.FavoriteActor.actor_id == actor_id
        ).delete(synchronize_session=False)
        db.commit()

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("delete", "favorites_actors", duration, False)
        logger.error(f"Error removing favorite actor: {e}", extra={"operation": "favorite_actor_remove"})
        raise DatabaseError(f"Failed to remove favorite actor: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("delete", "favorites_actors", duration, True)

    return deleted > 0


def get_favorite_actors(
    db: Session,
    user_id: int,
    skip: int = 0,
    limit: int = 8
) -> List[models.Actor]:
    """Избранные актеры пользователя, новые сверху."""
    start_time = datetime.now()

    try:
        actors = db.query(models.Actor).join(
            models.FavoriteActor, models.FavoriteActor.actor_id == models.Actor.id
        ).filter(
            models.FavoriteActor.user_id == user_id
        ).order_by(
            desc(models.FavoriteActor.added_at), desc(models.FavoriteActor.id)
        ).offset(skip).limit(limit).all()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "favorites_actors", duration, True)

        return actors

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "favorites_actors", duration, False)
        logger.error(f"Error getting favorite actors: {e}", extra={"operation": "favorite_actors"})
        raise DatabaseError(f"Failed to get favorite actors: {str(e)}") from e


# ====== Оценки ======

def add_rating(db: Session, user_id: int, rating: schemas.RatingRequest) -> models.Film:
    """
    Оценка фильма.

    Строка фильма блокируется, затем вставка оценки и пересчет средней
    оценки идут в одной транзакции. Повторная оценка дает
    FoundFavoriteError и ничего не перезаписывает, любая другая ошибка БД
    сразу дает DatabaseError.
    """
    start_time = datetime.now()

    try:
        film = _film_for_update(db, rating.film_id).first()
        if film is None:
            raise NotFoundError("film", rating.film_id)

        db.add(models.Rating(user_id=user_id, film_id=rating.film_id, score=rating.rating))
        db.flush()

        count, average = db.query(
            func.count(models.Rating.id),
            func.avg(models.Rating.score)
        ).filter(models.Rating.film_id == rating.film_id).one()

        film.rating_count = count
        film.rating = round(float(average), 1) if average is not None else 0.0
        db.commit()

    except IntegrityError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("insert", "ratings", duration, False)
        raise FoundFavoriteError(
            f"User {user_id} has already rated film {rating.film_id}"
        ) from e

    except SQLAlchemyError as e:
        db.rollback()
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("insert", "ratings", duration, False)
        logger.error(f"Error adding rating: {e}", extra={"operation": "add_rating"})
        raise DatabaseError(f"Failed to add rating: {str(e)}") from e

    duration = (datetime.now() - start_time).total_seconds()
    record_database_query("insert", "ratings", duration, True)
    record_user_event("rating_added")

    logger.info(f"User {user_id} rated film {rating.film_id}: {rating.rating}")
    return film


# ====== Календарь ======

def get_calendar(db: Session, year: int, month: int, today: Optional[date] = None) -> schemas.CalendarResponse:
    """
    Календарь релизов: фильмы месяца, сгруппированные по дню выхода.

    Args:
        year: Год
        month: Месяц (1-12)
        today: Текущая дата; current_day равен 0, если месяц не текущий
    """
    today = today or date.today()
    prefix = f"{year:04d}-{month:02d}-"
    start_time = datetime.now()

    try:
        films = db.query(models.Film).filter(
            models.Film.release_date.like(prefix + "%")
        ).order_by(models.Film.release_date, models.Film.id).all()

        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "films", duration, True)

    except SQLAlchemyError as e:
        duration = (datetime.now() - start_time).total_seconds()
        record_database_query("select", "films", duration, False)
        logger.error(f"Error building calendar: {e}", extra={"operation": "calendar"})
        raise DatabaseError(f"Failed to build calendar: {str(e)}") from e

    days_in_month = calendar.monthrange(year, month)[1]
    days = {n: schemas.CalendarDay(day_number=n) for n in range(1, days_in_month + 1)}

    for film in films:
        try:
            day = int(film.release_date[len(prefix):len(prefix) + 2])
        except ValueError:
            logger.warning(f"Film {film.id} has malformed release date {film.release_date!r}")
            continue
        if day in days:
            days[day].day_news.append(schemas.CalendarFilm.model_validate(film))

    current_day = today.day if (today.year, today.month) == (year, month) else 0

    return schemas.CalendarResponse(
        month_name=MONTH_NAMES[month - 1],
        month_text=CALENDAR_TEXT,
        current_day=current_day,
        days=list(days.values())
    )
