"""Тесты CRUD операций сервиса авторизации."""
import pytest

from filmoteka.services.auth_service import crud, schemas
from filmoteka.shared.exceptions import ConflictError, InvalidEmailError, NotFoundError


@pytest.mark.parametrize("email", ["a@x.io", "first.last+tag@mail.example.com", "u@localhost"])
def test_valid_emails(email):
    assert crud.validate_email(email) == email


@pytest.mark.parametrize("email", ["", "plain", "a@", "@x.io", "a b@x.io", "a@-x.io"])
def test_invalid_emails(email):
    with pytest.raises(InvalidEmailError):
        crud.validate_email(email)


def test_password_hash_is_salted():
    first = crud.get_password_hash("secret")
    second = crud.get_password_hash("secret")

    assert first != second
    assert crud.verify_password("secret", first)
    assert not crud.verify_password("Secret", first)


def test_find_user_account(db, user):
    assert crud.find_user_account(db, "alice", "p@ss").id == user.id
    assert crud.find_user_account(db, "alice", "wrong") is None
    assert crud.find_user_account(db, "Alice", "p@ss") is None
    assert crud.find_user_account(db, "nobody", "p@ss") is None


def test_get_user_role(db, user):
    assert crud.get_user_role(db, "alice").value == "regular"

    with pytest.raises(NotFoundError):
        crud.get_user_role(db, "nobody")


def test_create_user_conflict(db, user):
    signup = schemas.SignupRequest(login="alice", password="x", email="a@x.io")
    with pytest.raises(ConflictError):
        crud.create_user(db, signup)


def test_edit_profile_skips_empty_fields(db, user):
    updated = crud.edit_profile(db, "alice", schemas.ProfileUpdate(birth_date="2000-02-02"))

    assert updated.birth_date == "2000-02-02"
    assert updated.email == "a@x.io"
    assert updated.login == "alice"
    assert crud.verify_password("p@ss", updated.password_hash)


def test_edit_profile_same_login_is_not_conflict(db, user):
    updated = crud.edit_profile(db, "alice", schemas.ProfileUpdate(login="alice"))
    assert updated.login == "alice"


def test_edit_profile_unknown_user(db):
    with pytest.raises(NotFoundError):
        crud.edit_profile(db, "ghost", schemas.ProfileUpdate(email="g@x.io"))


def test_check_profile_update_does_not_write(db, user):
    with pytest.raises(ConflictError):
        crud.check_profile_update(db, "alice", schemas.ProfileUpdate(password="p@ss"))

    checked = crud.check_profile_update(db, "alice", schemas.ProfileUpdate(email="new@x.io"))
    assert checked.id == user.id
    assert checked.email == "a@x.io"
