"""Общие fixtures для тестов сервисов фильмотеки.

Переменные окружения выставляются до первого импорта filmoteka: объект
settings и движок БД создаются при импорте.
"""
import os
import time

os.environ["DATABASE_DSN"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import fakeredis
import pytest
from fastapi.testclient import TestClient

from filmoteka.config.database import Base, SessionLocal, engine
from filmoteka.config.settings import settings
from filmoteka.shared.sessions import SessionManager, get_session_manager
from filmoteka.services.auth_service import crud as auth_crud
from filmoteka.services.auth_service import models as auth_models
from filmoteka.services.auth_service.csrf import CsrfManager, get_csrf_manager
from filmoteka.services.auth_service.main import app as auth_app
from filmoteka.services.catalog_service import models as catalog_models
from filmoteka.services.catalog_service.main import app as catalog_app


@pytest.fixture
def session_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def csrf_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def expire_key():
    """Истечение TTL ключа в Redis."""
    def expire(client, key):
        client.pexpire(key, 1)
        time.sleep(0.01)
    return expire


@pytest.fixture
def sessions(session_redis):
    return SessionManager(session_redis)


@pytest.fixture
def csrf(csrf_redis):
    return CsrfManager(csrf_redis)


@pytest.fixture
def db():
    """Чистая схема на каждый тест."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def upload_dirs(tmp_path, monkeypatch):
    """Каталоги загрузок во временной директории."""
    avatars = tmp_path / "avatars"
    posters = tmp_path / "icons"
    monkeypatch.setattr(settings, "AVATAR_DIR", str(avatars))
    monkeypatch.setattr(settings, "POSTER_DIR", str(posters))
    return avatars, posters


@pytest.fixture
def auth_client(db, sessions, csrf, upload_dirs):
    auth_app.dependency_overrides[get_session_manager] = lambda: sessions
    auth_app.dependency_overrides[get_csrf_manager] = lambda: csrf
    try:
        with TestClient(auth_app) as client:
            yield client
    finally:
        auth_app.dependency_overrides.clear()


@pytest.fixture
def catalog_client(db, sessions, upload_dirs):
    catalog_app.dependency_overrides[get_session_manager] = lambda: sessions
    try:
        with TestClient(catalog_app) as client:
            yield client
    finally:
        catalog_app.dependency_overrides.clear()


@pytest.fixture
def user(db):
    """Зарегистрированный пользователь alice."""
    db_user = auth_models.User(
        login="alice",
        password_hash=auth_crud.get_password_hash("p@ss"),
        name="A",
        email="a@x.io",
        birth_date="1990-01-01"
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


@pytest.fixture
def logged_in(catalog_client, sessions, user):
    """Клиент каталога с cookie действующей сессии alice."""
    session_id, _ = sessions.create_session(user.login)
    catalog_client.cookies.set(settings.SESSION_COOKIE_NAME, session_id)
    return catalog_client


@pytest.fixture
def catalog_data(db):
    """Жанры, актеры и фильмы для тестов каталога."""
    drama = catalog_models.Genre(id=1, title="Драма")
    comedy = catalog_models.Genre(id=2, title="Комедия")

    keanu = catalog_models.Actor(
        id=1, name="Keanu Reeves", birth_date="1964-09-02",
        country="Canada", career="actor,producer"
    )
    carrie = catalog_models.Actor(
        id=2, name="Carrie-Anne Moss", birth_date="1967-08-21",
        country="Canada", career="actor"
    )
    jim = catalog_models.Actor(
        id=3, name="Jim Carrey", birth_date="1962-01-17",
        country="USA", career="actor,comedian"
    )

    matrix = catalog_models.Film(
        id=42, title="The Matrix", info="Neo wakes up", release_date="1999-03-31",
        country="USA", mpaa="R", rating=8.7, genres=[drama], actors=[keanu, carrie]
    )
    john_wick = catalog_models.Film(
        id=43, title="John Wick", info="Dog", release_date="2014-10-24",
        country="USA", mpaa="R", rating=7.4, genres=[drama], actors=[keanu]
    )
    mask = catalog_models.Film(
        id=44, title="The Mask", info="Green", release_date="1994-07-29",
        country="USA", mpaa="PG-13", rating=6.9, genres=[comedy], actors=[jim]
    )

    db.add_all([drama, comedy, keanu, carrie, jim, matrix, john_wick, mask])
    db.commit()
    return {"films": [matrix, john_wick, mask], "actors": [keanu, carrie, jim]}
