from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from fleetdash.errors import FileNotFoundInCatalogError, InvalidFileNameError
from fleetdash.models import FileRecord
from fleetdash.utils.rwlock import RWLock

logger = logging.getLogger(__name__)


def clean_name(name: str) -> str:
    """Reduce a client-supplied name to a bare file name."""
    base = PurePosixPath(name.replace("\\", "/")).name
    if base in ("", ".", ".."):
        raise InvalidFileNameError(name)
    return base


class FileCatalog:
    """Firmware images available for OTA updates, keyed by file name."""

    def __init__(self, upload_dir: Path) -> None:
        self._upload_dir = upload_dir
        self._files: dict[str, FileRecord] = {}
        self._lock = RWLock()

    @property
    def path(self) -> Path:
        return self._upload_dir

    def ensure_dir(self) -> None:
        self._upload_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self._upload_dir / clean_name(name)

    def load_existing(self) -> int:
        """Index files already present in the upload directory."""
        try:
            entries = [entry for entry in self._upload_dir.iterdir() if entry.is_file()]
        except OSError as exc:
            logger.warning("Could not read upload directory %s: %s", self._upload_dir, exc)
            return 0

        with self._lock.write():
            for entry in entries:
                mtime = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
                self._files[entry.name] = FileRecord.for_name(entry.name, mtime)
        logger.debug("Indexed %d existing files in %s", len(entries), self._upload_dir)
        return len(entries)

    def list_files(self) -> list[FileRecord]:
        with self._lock.read():
            return sorted(self._files.values(), key=lambda record: record.name)

    def get(self, name: str) -> FileRecord | None:
        with self._lock.read():
            return self._files.get(name)

    def save(self, filename: str, source: BinaryIO) -> FileRecord:
        name = clean_name(filename)
        self.ensure_dir()
        with (self._upload_dir / name).open("wb") as handle:
            shutil.copyfileobj(source, handle)

        record = FileRecord.for_name(name, datetime.now(timezone.utc))
        with self._lock.write():
            self._files[name] = record
        logger.info("Stored firmware file '%s'", name)
        return record

    def delete(self, name: str) -> str:
        name = clean_name(name)
        path = self._upload_dir / name
        with self._lock.write():
            if not path.exists():
                raise FileNotFoundInCatalogError(name)
            path.unlink()
            self._files.pop(name, None)
        logger.info("Deleted firmware file '%s'", name)
        return name

    def rename(self, name: str, new_name: str) -> FileRecord:
        name = clean_name(name)
        target = clean_name(new_name)
        with self._lock.write():
            record = self._files.get(name)
            if record is None:
                raise FileNotFoundInCatalogError(name)
            (self._upload_dir / name).rename(self._upload_dir / target)
            del self._files[name]
            renamed = FileRecord.for_name(target, record.upload_time)
            self._files[target] = renamed
        logger.info("Renamed firmware file '%s' to '%s'", name, target)
        return renamed
