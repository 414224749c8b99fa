"""Per-user activity record persistence.

One document per user. ``update`` replaces the whole document: without an
``expected_version`` the last writer wins, so two concurrent
read-modify-write cycles on the same user can lose one of the changes.
Passing ``expected_version`` turns that into a ``VersionConflictError``.
"""

import asyncio
import contextlib
import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Iterator, Protocol
from urllib.parse import quote

import structlog

from interview_progress.errors import VersionConflictError
from interview_progress.models.activity import UserActivityRecord, utcnow

logger = structlog.get_logger()


class ActivityStore(Protocol):
    async def find_one(self, user_id: str) -> UserActivityRecord | None: ...

    async def create(self, record: UserActivityRecord) -> UserActivityRecord: ...

    async def update(
        self, record: UserActivityRecord, expected_version: int | None = None
    ) -> UserActivityRecord: ...


def _next_revision(
    record: UserActivityRecord, current: dict | None, expected_version: int | None
) -> UserActivityRecord:
    current_version = current.get("version", 0) if current else 0
    if expected_version is not None and expected_version != current_version:
        raise VersionConflictError(record.user_id, expected_version, current_version)
    return record.model_copy(
        deep=True, update={"version": current_version + 1, "last_active": utcnow()}
    )


class InMemoryActivityStore:
    """Dict-backed store. Documents are copied in and out."""

    def __init__(self) -> None:
        self._documents: dict[str, dict] = {}

    async def find_one(self, user_id: str) -> UserActivityRecord | None:
        document = self._documents.get(user_id)
        if document is None:
            return None
        return UserActivityRecord.model_validate(document)

    async def create(self, record: UserActivityRecord) -> UserActivityRecord:
        existing = self._documents.get(record.user_id)
        if existing is not None:
            return UserActivityRecord.model_validate(existing)
        self._documents[record.user_id] = record.to_document()
        return record.model_copy(deep=True)

    async def update(
        self, record: UserActivityRecord, expected_version: int | None = None
    ) -> UserActivityRecord:
        stored = _next_revision(record, self._documents.get(record.user_id), expected_version)
        self._documents[record.user_id] = stored.to_document()
        return stored


class JsonActivityStore:
    """One JSON file per user (fcntl.flock + atomic write).

    Args:
        directory: Folder holding ``<user_id>.json`` documents.
    """

    def __init__(self, directory: Path):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def get_record_path(self, user_id: str) -> Path:
        return self.directory / f"{quote(user_id, safe='')}.json"

    @contextlib.contextmanager
    def _write_lock(self, user_id: str) -> Iterator[None]:
        lock_path = self.get_record_path(user_id).with_suffix(".lock")
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)

    def _read_document(self, user_id: str) -> dict | None:
        path = self.get_record_path(user_id)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = json.load(f)
            fcntl.flock(f, fcntl.LOCK_UN)
        return data

    def _write_document(self, record: UserActivityRecord) -> None:
        path = self.get_record_path(record.user_id)
        with tempfile.NamedTemporaryFile(
            "w", dir=self.directory, delete=False, suffix=".json", encoding="utf-8"
        ) as tmp:
            try:
                json.dump(record.to_document(), tmp)
            except BaseException:
                tmp.close()
                os.unlink(tmp.name)
                raise
        os.replace(tmp.name, path)

    def _find_one_sync(self, user_id: str) -> UserActivityRecord | None:
        data = self._read_document(user_id)
        return None if data is None else UserActivityRecord.model_validate(data)

    def _create_sync(self, record: UserActivityRecord) -> UserActivityRecord:
        with self._write_lock(record.user_id):
            existing = self._read_document(record.user_id)
            if existing is not None:
                return UserActivityRecord.model_validate(existing)
            self._write_document(record)
        logger.debug("activity_document_created", user_id=record.user_id)
        return record

    def _update_sync(
        self, record: UserActivityRecord, expected_version: int | None
    ) -> UserActivityRecord:
        with self._write_lock(record.user_id):
            stored = _next_revision(record, self._read_document(record.user_id), expected_version)
            self._write_document(stored)
        return stored

    async def find_one(self, user_id: str) -> UserActivityRecord | None:
        return await asyncio.to_thread(self._find_one_sync, user_id)

    async def create(self, record: UserActivityRecord) -> UserActivityRecord:
        return await asyncio.to_thread(self._create_sync, record)

    async def update(
        self, record: UserActivityRecord, expected_version: int | None = None
    ) -> UserActivityRecord:
        return await asyncio.to_thread(self._update_sync, record, expected_version)
