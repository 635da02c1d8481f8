"""
Хранение загруженных файлов (аватары, постеры) на локальном диске.
"""

import hashlib
import logging
import os
from typing import BinaryIO, Optional

from fastapi import UploadFile

from filmoteka.config.settings import settings
from filmoteka.shared.exceptions import ValidationError, StoreUnavailableError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def validate_filename(filename: Optional[str]) -> str:
    """
    Проверка имени файла, присланного клиентом.

    Имя используется только ради расширения, но пути и переходы
    по каталогам отклоняются целиком.
    """
    if not filename:
        raise ValidationError("Uploaded file has no name")
    if "/" in filename or "\\" in filename or ".." in filename or "\x00" in filename:
        raise ValidationError(f"Unsafe upload filename: {filename!r}")
    return filename


def _read_limited(fileobj: BinaryIO, limit: int) -> bytes:
    """Чтение файла целиком, но не больше limit байт."""
    chunks = []
    total = 0
    while True:
        chunk = fileobj.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise ValidationError(f"Uploaded file exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def save_upload(upload: UploadFile, directory: str, url_prefix: str) -> str:
    """
    Сохранение загруженного файла под именем sha256(содержимое) + расширение.

    Args:
        upload: Файл из multipart формы
        directory: Каталог для сохранения
        url_prefix: Префикс публичного пути (например, "/avatars/")

    Returns:
        Публичный путь к файлу, который сохраняется в БД
    """
    filename = validate_filename(upload.filename)
    content = _read_limited(upload.file, settings.MAX_UPLOAD_SIZE)
    if not content:
        raise ValidationError("Uploaded file is empty")

    extension = os.path.splitext(filename)[1].lower()
    stored_name = hashlib.sha256(content).hexdigest() + extension

    try:
        os.makedirs(directory, exist_ok=True)
        with open(os.path.join(directory, stored_name), "wb") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Failed to store upload {filename!r} in {directory}: {e}")
        raise StoreUnavailableError("filesystem", f"Failed to store file: {e}") from e

    logger.info(f"Stored upload {filename!r} as {stored_name}")
    return url_prefix + stored_name
