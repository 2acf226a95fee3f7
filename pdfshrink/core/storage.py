"""Temporary file store shared by all requests."""

import logging
import uuid
from pathlib import Path
from typing import Union

from pdfshrink.core.errors import FileStoreError

logger = logging.getLogger(__name__)


class TempFileStore:
    """A directory holding uploads and Ghostscript outputs while they are in use.

    Names inside the directory are generated from uuid4 values, so two
    requests never touch the same file and no locking is needed.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def ensure_directory(self) -> Path:
        """Create the directory (and parents) if it does not exist yet."""
        if self.directory.exists() and not self.directory.is_dir():
            raise FileStoreError(
                f"Upload path exists and is not a directory: {self.directory}",
                path=str(self.directory),
            )
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileStoreError(
                f"Cannot create upload directory {self.directory}: {e.strerror or e}",
                path=str(self.directory),
            ) from e
        return self.directory

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def path_for(self, name: str) -> Path:
        """Path of a generated file name inside the store."""
        return self.directory / name

    @staticmethod
    def exists(path: Union[str, Path, None]) -> bool:
        if not path:
            return False
        try:
            return Path(path).exists()
        except OSError:
            return False

    @staticmethod
    def remove(path: Union[str, Path, None]) -> None:
        """Delete a file, ignoring files that are already gone."""
        if not path:
            return
        try:
            Path(path).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Error cleaning up file %s: %s", path, e)

    def listing(self) -> list[str]:
        """Names of the files currently in the store."""
        if not self.directory.is_dir():
            return []
        return sorted(p.name for p in self.directory.iterdir())
