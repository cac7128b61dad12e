"""Firmware file models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

FILES_URL_PREFIX = "/files/"


class FileRecord(BaseModel):
    """Uploaded firmware image."""

    model_config = {"extra": "forbid"}

    name: str
    url: str
    upload_time: datetime

    @classmethod
    def for_name(cls, name: str, upload_time: datetime) -> FileRecord:
        return cls(name=name, url=FILES_URL_PREFIX + name, upload_time=upload_time)
