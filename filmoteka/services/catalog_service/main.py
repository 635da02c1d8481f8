"""
Основной файл Catalog Service.
"""

import logging
from datetime import date, datetime
from typing import Optional
from fastapi import FastAPI, Depends, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from filmoteka.config.database import get_db, engine, check_database_connection
from filmoteka.config.settings import settings
from filmoteka.shared.logging import setup_logging, request_logger
from filmoteka.shared.exceptions import NotFoundError, ValidationError, setup_exception_handlers
from filmoteka.shared.schemas import MAX_DB_INT, HealthCheck, PageParams, envelope_response
from filmoteka.shared.dependencies import json_body
from filmoteka.shared.redis_client import check_redis_connection
from filmoteka.shared.sessions import SessionManager, get_session_manager
from filmoteka.shared.storage import save_upload
from filmoteka.monitoring.metrics import setup_metrics

from . import schemas, crud
from .models import Base
from .dependencies import (
    get_current_user_id, get_pagination_params, get_collection_page_params, parse_id_list
)

SERVICE_NAME = "catalog-service"

# Настройка логирования
setup_logging(SERVICE_NAME)
logger = logging.getLogger(__name__)

# Создание таблиц
Base.metadata.create_all(bind=engine)

# Создание приложения
app = FastAPI(
    title="Catalog Service",
    description="Сервис каталога фильмотеки",
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
)

# Настройка метрик
setup_metrics(app, SERVICE_NAME)

# Обработчики исключений
setup_exception_handlers(app)


# ====== Health check ======

@app.get("/health")
def health_check(sessions: SessionManager = Depends(get_session_manager)) -> HealthCheck:
    """
    Health check endpoint.
    Проверяет подключение к базе данных и хранилищу сессий.
    """
    dependencies_status = {
        "database": "healthy" if check_database_connection() else "unhealthy",
        "session_store": "healthy" if check_redis_connection(sessions.r, "session") else "unhealthy",
    }

    return HealthCheck(
        status="healthy" if all(v == "healthy" for v in dependencies_status.values()) else "degraded",
        service=SERVICE_NAME,
        version="1.0.0",
        dependencies=dependencies_status
    )


# ====== Films endpoints ======

@app.get("/api/v1/films")
def get_films(
    request: Request,
    pagination: PageParams = Depends(get_collection_page_params),
    db: Session = Depends(get_db)
):
    """
    Подборка фильмов.

    collection_id фильтрует по жанру, 0 или его отсутствие означает
    все фильмы. ID вне диапазона INTEGER дает 404 без запроса к БД.
    """
    try:
        genre_id = int(request.query_params.get("collection_id", 0))
    except ValueError:
        genre_id = 0
    if not 0 <= genre_id <= MAX_DB_INT:
        raise NotFoundError("genre", genre_id)

    collection_name, films = crud.get_films(
        db, genre_id=genre_id, skip=pagination.offset, limit=pagination.per_page
    )

    body = schemas.FilmsPage(
        page=pagination.page,
        page_size=pagination.per_page,
        total=len(films),
        collection_name=collection_name,
        films=[schemas.FilmShort.model_validate(f) for f in films]
    )
    return envelope_response(body=body)


@app.get("/api/v1/film")
def get_film(
    film_id: int = Query(..., ge=1, le=MAX_DB_INT),
    db: Session = Depends(get_db)
):
    """Страница фильма с жанрами, актерами и количеством оценок."""
    film = crud.get_film(db, film_id)
    if film is None:
        raise NotFoundError("film", film_id)

    return envelope_response(body=schemas.FilmDetail.model_validate(film))


@app.get("/api/v1/actor")
def get_actor(
    actor_id: int = Query(..., ge=1, le=MAX_DB_INT),
    db: Session = Depends(get_db)
):
    """Страница актера с его фильмами."""
    actor = crud.get_actor(db, actor_id)
    if actor is None:
        raise NotFoundError("actor", actor_id)

    return envelope_response(body=schemas.ActorDetail.model_validate(actor))


@app.post("/api/v1/find")
def find_films(
    filters: schemas.FindFilmRequest = Depends(json_body(schemas.FindFilmRequest)),
    db: Session = Depends(get_db)
):
    """Поиск фильмов по фильтрам."""
    films = crud.find_films(db, filters)

    body = schemas.FilmsResponse(
        films=[schemas.FilmShort.model_validate(f) for f in films],
        total=len(films)
    )
    return envelope_response(body=body)


@app.post("/api/v1/search/actor")
def find_actors(
    filters: schemas.FindActorRequest = Depends(json_body(schemas.FindActorRequest)),
    db: Session = Depends(get_db)
):
    """Поиск актеров по фильтрам."""
    actors = crud.find_actors(db, filters)

    body = schemas.ActorsResponse(
        actors=[schemas.ActorShort.model_validate(a) for a in actors],
        total=len(actors)
    )
    return envelope_response(body=body)


@app.get("/api/v1/calendar")
def get_calendar(
    month: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Календарь релизов за месяц (по умолчанию текущий), month в формате YYYY-MM."""
    today = date.today()
    year, month_number = today.year, today.month

    if month:
        try:
            parsed = datetime.strptime(month, "%Y-%m")
        except ValueError:
            raise ValidationError(f"Malformed month {month!r}, expected YYYY-MM")
        year, month_number = parsed.year, parsed.month

    body = crud.get_calendar(db, year, month_number, today)
    return envelope_response(body=body)


@app.post("/api/v1/add/film")
def add_film(
    title: str = Form(...),
    info: str = Form(""),
    release_date: str = Form("", alias="date"),
    country: str = Form(""),
    mpaa: str = Form(""),
    genre: str = Form(""),
    actors: str = Form(""),
    photo: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db)
):
    """
    Добавление фильма (multipart/form-data).

    genre и actors передаются списками ID через запятую.
    """
    try:
        film_data = schemas.FilmCreate(
            title=title,
            info=info,
            release_date=release_date,
            country=country,
            mpaa=mpaa,
            genre_ids=parse_id_list(genre, "genre"),
            actor_ids=parse_id_list(actors, "actors")
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Malformed film form",
            errors=e.errors(include_url=False, include_context=False)
        ) from e

    if photo is not None and photo.filename:
        film_data.poster = save_upload(photo, settings.POSTER_DIR, settings.POSTER_URL_PREFIX)

    film = crud.create_film(db, film_data)

    request_logger.log_audit(
        action="add_film",
        resource_type="film",
        resource_id=film.id,
        details={"title": film.title}
    )

    return envelope_response(body={"id": film.id})


# ====== Favorites endpoints ======

@app.get("/api/v1/favorite/films")
def get_favorite_films(
    user_id: int = Depends(get_current_user_id),
    pagination: PageParams = Depends(get_pagination_params),
    db: Session = Depends(get_db)
):
    """Избранные фильмы текущего пользователя."""
    films = crud.get_favorite_films(db, user_id, skip=pagination.offset, limit=pagination.per_page)

    body = schemas.FilmsResponse(
        films=[schemas.FilmShort.model_validate(f) for f in films],
        total=len(films)
    )
    return envelope_response(body=body)


@app.get("/api/v1/favorite/film/add")
def add_favorite_film(
    user_id: int = Depends(get_current_user_id),
    film_id: int = Query(..., ge=1, le=MAX_DB_INT),
    db: Session = Depends(get_db)
):
    """Добавление фильма в избранное; повтор дает 406."""
    crud.add_favorite_film(db, user_id, film_id)
    return envelope_response()


@app.get("/api/v1/favorite/film/remove")
def remove_favorite_film(
    user_id: int = Depends(get_current_user_id),
    film_id: int = Query(..., ge=1, le=MAX_DB_INT),
    db: Session = Depends(get_db)
):
    """Удаление фильма из избранного; удаление отсутствующего не ошибка."""
    crud.remove_favorite_film(db, user_id, film_id)
    return envelope_response()


@app.get("/api/v1/favorite/actors")
def get_favorite_actors(
    user_id: int = Depends(get_current_user_id),
    pagination: PageParams = Depends(get_pagination_params),
    db: Session = Depends(get_db)
):
    """Избранные актеры текущего пользователя."""
    actors = crud.get_favorite_actors(db, user_id, skip=pagination.offset, limit=pagination.per_page)

    body = schemas.ActorsResponse(
        actors=[schemas.ActorShort.model_validate(a) for a in actors],
        total=len(actors)
    )
    return envelope_response(body=body)


@app.get("/api/v1/favorite/actor/add")
def add_favorite_actor(
    user_id: int = Depends(get_current_user_id),
    actor_id: int = Query(..., ge=1, le=MAX_DB_INT),
    db: Session = Depends(get_db)
):
    """Добавление актера в избранное; повтор дает 406."""
    crud.add_favorite_actor(db, user_id, actor_id)
    return envelope_response()


@app.get("/api/v1/favorite/actor/remove")
def remove_favorite_actor(
    user_id: int = Depends(get_current_user_id),
    actor_id: int = Query(..., ge=1, le=MAX_DB_INT),
    db: Session = Depends(get_db)
):
    """Удаление актера из избранного."""
    crud.remove_favorite_actor(db, user_id, actor_id)
    return envelope_response()


# ====== Ratings endpoints ======

@app.post("/api/v1/rating/add")
def add_rating(
    user_id: int = Depends(get_current_user_id),
    rating: schemas.RatingRequest = Depends(json_body(schemas.RatingRequest)),
    db: Session = Depends(get_db)
):
    """
    Оценка фильма.

    Повторная оценка того же фильма дает 406 и не меняет первую.
    """
    film = crud.add_rating(db, user_id, rating)
    return envelope_response(body={"rating": film.rating, "rating_count": film.rating_count})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "filmoteka.services.catalog_service.main:app",
        host=settings.CATALOG_SERVICE_HOST,
        port=settings.CATALOG_SERVICE_PORT,
        timeout_keep_alive=settings.HTTP_TIMEOUT_KEEP_ALIVE
    )
