"""
Local disk storage for uploaded images.

Images are stored under the configured UPLOAD_FOLDER and referenced by a
relative key (the storage prefix), e.g. ``uploads/3/4f1c...e2.jpg``. Only
the key is written to the database, so the upload root can move without a
data migration.

Usage:
    key = storage.put(request.files['postImage'], 'uploads/3')
    data = storage.get(key)
    storage.delete(key)
"""

import base64
import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

from flask import current_app

logger = logging.getLogger(__name__)


def file_extension(filename: Optional[str]) -> str:
    """
    Lower-cased extension of the uploaded file name, or ''.
    Only the text after the last dot counts, so `фото.png` and `.png` both
    give `png`. Anything that is not plain alphanumerics is dropped.
    """
    if not filename or '.' not in filename:
        return ''
    ext = filename.rsplit('.', 1)[1].lower()
    return ext if ext.isascii() and ext.isalnum() else ''


class StorageError(Exception):
    """Raised when a key is invalid or a file cannot be written."""


class LocalStorage:
    """Stores files below a root directory, addressed by relative keys."""

    def __init__(self, base_path: Optional[str] = None):
        """
        Args:
            base_path: Root directory. When omitted the app's UPLOAD_FOLDER
                is used, resolved on every call so tests can swap it.
        """
        self._base_path = Path(base_path).resolve() if base_path else None

    @property
    def base_path(self) -> Path:
        if self._base_path is not None:
            return self._base_path
        return Path(current_app.config['UPLOAD_FOLDER']).resolve()

    def path_for(self, key: str) -> Path:
        """Absolute path of a key. Keys may not point outside the root."""
        if not key:
            raise StorageError('Empty storage key')
        relative = PurePosixPath(key)
        if relative.is_absolute() or '..' in relative.parts:
            raise StorageError(f'Invalid storage key: {key}')
        return self.base_path.joinpath(*relative.parts)

    def put(self, file, prefix_dir: str) -> str:
        """
        Save an uploaded file (werkzeug FileStorage) under prefix_dir with a
        freshly generated name, keeping the original extension.

        Returns:
            str: the storage key of the saved file
        """
        ext = file_extension(file.filename)
        name = uuid.uuid4().hex + (f'.{ext}' if ext else '')
        key = str(PurePosixPath(prefix_dir) / name)

        target = self.path_for(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            file.save(str(target))
        except OSError as e:
            raise StorageError(f'Could not save {key}: {e}') from e

        logger.debug('Stored %s', key)
        return key

    def get(self, key: str) -> bytes:
        return self.path_for(key).read_bytes()

    def get_base64(self, key: str) -> str:
        return base64.b64encode(self.get(key)).decode('ascii')

    def exists(self, key: str) -> bool:
        try:
            return self.path_for(key).is_file()
        except StorageError:
            return False

    def delete(self, key: str, missing_ok: bool = True) -> None:
        path = self.path_for(key)
        try:
            path.unlink()
            logger.debug('Deleted %s', key)
        except FileNotFoundError:
            if not missing_ok:
                raise
            logger.warning('Tried to delete missing file %s', key)
