"""Тесты сохранения загруженных файлов."""
import hashlib
import io

import pytest
from fastapi import UploadFile

from filmoteka.config.settings import settings
from filmoteka.shared import storage
from filmoteka.shared.exceptions import ValidationError


def upload(content, filename="photo.png"):
    return UploadFile(file=io.BytesIO(content), filename=filename)


def test_save_upload(tmp_path):
    content = b"image bytes"

    path = storage.save_upload(upload(content, "Photo.PNG"), str(tmp_path / "avatars"), "/avatars/")

    stored_name = hashlib.sha256(content).hexdigest() + ".png"
    assert path == "/avatars/" + stored_name
    assert (tmp_path / "avatars" / stored_name).read_bytes() == content


def test_same_content_same_name(tmp_path):
    first = storage.save_upload(upload(b"same", "a.jpg"), str(tmp_path), "/icons/")
    second = storage.save_upload(upload(b"same", "b.jpg"), str(tmp_path), "/icons/")

    assert first == second
    assert len(list(tmp_path.iterdir())) == 1


def test_file_without_extension(tmp_path):
    path = storage.save_upload(upload(b"raw", "poster"), str(tmp_path), "/icons/")
    assert path == "/icons/" + hashlib.sha256(b"raw").hexdigest()


@pytest.mark.parametrize("filename", ["", None, "../x.png", "dir/x.png", "dir\\x.png", "x\x00.png"])
def test_unsafe_filenames(tmp_path, filename):
    with pytest.raises(ValidationError):
        storage.save_upload(upload(b"data", filename), str(tmp_path), "/icons/")

    assert not any(tmp_path.iterdir())


def test_empty_file(tmp_path):
    with pytest.raises(ValidationError):
        storage.save_upload(upload(b""), str(tmp_path), "/icons/")


def test_too_large_file(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 10)

    with pytest.raises(ValidationError):
        storage.save_upload(upload(b"x" * 11), str(tmp_path), "/icons/")

    path = storage.save_upload(upload(b"x" * 10), str(tmp_path), "/icons/")
    assert path.startswith("/icons/")
