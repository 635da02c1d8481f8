"""Тесты dependencies сервиса каталога."""
import pytest
from starlette.requests import Request

from filmoteka.services.catalog_service.dependencies import (
    get_collection_page_params,
    get_current_user_id,
    get_current_user_id_optional,
    get_pagination_params,
    parse_id_list,
)
from filmoteka.shared.exceptions import AuthenticationError, ValidationError


def make_request(query_string: str) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": query_string.encode(),
        "headers": [],
    })


# ====== Списки ID ======

@pytest.mark.parametrize("raw, expected", [
    ("1", [1]),
    ("1,2,3", [1, 2, 3]),
    (" 4 , 5 ", [4, 5]),
    ("7,", [7]),
    (",8,,9", [8, 9]),
])
def test_parse_id_list(raw, expected):
    assert parse_id_list(raw, "genre") == expected


@pytest.mark.parametrize("raw", [
    "", None, ",", " , ", "1,a", "0", "-1", "1.5", "١", "2147483648", "1," + "9" * 30,
])
def test_parse_id_list_rejects(raw):
    with pytest.raises(ValidationError):
        parse_id_list(raw, "actors")


# ====== Пагинация ======

def test_pagination_defaults():
    params = get_pagination_params(make_request(""))
    assert (params.page, params.per_page, params.offset) == (1, 8, 0)


def test_pagination_values():
    params = get_pagination_params(make_request("page=3&per_page=5"))
    assert (params.page, params.per_page, params.offset) == (3, 5, 10)


def test_pagination_ignores_other_size_param():
    params = get_pagination_params(make_request("page_size=5"))
    assert params.per_page == 8

    params = get_collection_page_params(make_request("page_size=5&per_page=2"))
    assert params.per_page == 5


@pytest.mark.parametrize("query", ["page=abc", "page=0", "page=-2", "page=", "page=1.5"])
def test_pagination_bad_page_falls_back(query):
    assert get_pagination_params(make_request(query)).page == 1


def test_pagination_huge_values_fall_back():
    params = get_pagination_params(make_request("page=" + "9" * 30 + "&per_page=101"))
    assert (params.page, params.per_page, params.offset) == (1, 8, 0)

    params = get_pagination_params(make_request("page=2147483647&per_page=100"))
    assert (params.page, params.per_page) == (2147483647, 100)


# ====== Текущий пользователь ======

def test_current_user_without_cookie(sessions, db):
    assert get_current_user_id_optional(None, sessions, db) is None

    with pytest.raises(AuthenticationError):
        get_current_user_id(None)


def test_current_user_with_session(sessions, user, db):
    session_id, _ = sessions.create_session(user.login)

    user_id = get_current_user_id_optional(session_id, sessions, db)
    assert user_id == user.id
    assert get_current_user_id(user_id) == user.id


def test_current_user_unknown_session(sessions, db):
    assert get_current_user_id_optional("missing", sessions, db) is None
