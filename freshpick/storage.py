from __future__ import annotations
import logging
import os
from abc import ABC, abstractmethod
import tempfile
from pathlib import Path
from typing import Optional
from .config import Settings

logger = logging.getLogger(__name__)

# Durable key -> bytes records. A missing key reads as None.


class Storage(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the record stored under ``key``, or None."""
        pass

    @abstractmethod
    def set(self, key: str, data: bytes) -> None:
        """Replace the record stored under ``key``."""
        pass


class MemoryStorage(Storage):
    def __init__(self, records: Optional[dict[str, bytes]] = None):
        self.records: dict[str, bytes] = dict(records or {})

    def get(self, key: str) -> Optional[bytes]:
        return self.records.get(key)

    def set(self, key: str, data: bytes) -> None:
        self.records[key] = data


class JSONFileStorage(Storage):
    """One ``<key>.json`` file per record under ``directory``."""

    def __init__(self, directory: str | os.PathLike[str]):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(key)
        # Write a sibling temp file then rename, so readers never see a partial record
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("wrote %d bytes to %s", len(data), target)


def get_storage(settings: Settings) -> Storage:
    return JSONFileStorage(settings.DATA_DIR)
