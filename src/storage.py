"""Local key-value storage and the stores built on it.

Every store keeps a single JSON array under a fixed key and rewrites the
whole array on each change. Stores sharing one backend from several processes
get last-writer-wins semantics.
"""

import errno
import json
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter
from pydantic import ValidationError

from src.config import MAX_CACHED_TRANSLATIONS
from src.config import STORAGE_QUOTA_BYTES
from src.datamodels import CachedTranslation
from src.datamodels import MenuItem
from src.datamodels import PendingScan

logger = logging.getLogger(__name__)

PENDING_SCANS_KEY = "restroGuide_pendingScans"
CACHED_TRANSLATIONS_KEY = "restroGuide_cachedTranslations"
FAVORITES_KEY = "menuLensFavorites"


class StorageQuotaError(Exception):
    """Raised when a write would exceed the storage quota."""


class StorageCorruptionError(Exception):
    """Raised when a stored value cannot be decoded."""


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def _encoded_size(items: dict[str, str]) -> int:
    return sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in items.items())


class InMemoryStorage:
    """Dict-backed storage with the same quota rules as the file backend."""

    def __init__(self, quota_bytes: int = STORAGE_QUOTA_BYTES) -> None:
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        updated = {**self._items, key: value}
        size = _encoded_size(updated)
        if size > self.quota_bytes:
            raise StorageQuotaError(f"Writing '{key}' needs {size} bytes, quota is {self.quota_bytes}")
        self._items = updated

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """Storage persisted as one JSON object on disk."""

    def __init__(self, path: Path, quota_bytes: int = STORAGE_QUOTA_BYTES) -> None:
        self.path = Path(path)
        self.quota_bytes = quota_bytes

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable storage file {self.path}, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} does not hold an object, starting empty")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            if e.errno in (errno.ENOSPC, errno.EDQUOT):
                raise StorageQuotaError(f"No space left to write {self.path}: {e}") from e
            raise

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        size = _encoded_size(items)
        if size > self.quota_bytes:
            raise StorageQuotaError(f"Writing '{key}' needs {size} bytes, quota is {self.quota_bytes}")
        self._write(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if items.pop(key, None) is not None:
            self._write(items)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_id(timestamp: int) -> str:
    return f"{timestamp}-{uuid.uuid4().hex[:8]}"


class _JsonListStore:
    key: str
    adapter: TypeAdapter

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def _decode(self, raw: str) -> list:
        try:
            return self.adapter.validate_json(raw)
        except ValidationError as e:
            raise StorageCorruptionError(f"Corrupt value under '{self.key}': {e}") from e

    def _read(self) -> list:
        raw = self.storage.get_item(self.key)
        if raw is None:
            return []
        try:
            return self._decode(raw)
        except StorageCorruptionError as e:
            logger.warning(f"{e}. Treating as empty.")
            return []

    def _persist(self, records: list) -> None:
        self.storage.set_item(self.key, self.adapter.dump_json(records, by_alias=True).decode("utf-8"))


class PendingScanStore(_JsonListStore):
    """Scans captured while offline, most recent first."""

    key = PENDING_SCANS_KEY
    adapter = TypeAdapter(list[PendingScan])

    def save(self, image_data: str) -> PendingScan:
        """Queue an image for later analysis.

        Raises:
            StorageQuotaError: If the storage medium rejects the write.
        """
        timestamp = _now_ms()
        scan = PendingScan(id=_new_id(timestamp), image_data=image_data, timestamp=timestamp)
        self._persist([scan, *self._read()])
        logger.info(f"Saved pending scan {scan.id}")
        return scan

    def list(self) -> list[PendingScan]:
        return self._read()

    def get(self, scan_id: str) -> PendingScan | None:
        return next((scan for scan in self._read() if scan.id == scan_id), None)

    def remove(self, scan_id: str) -> None:
        self._persist([scan for scan in self._read() if scan.id != scan_id])


class FavoritesStore(_JsonListStore):
    """Dishes the user saved, identified by their original-language name."""

    key = FAVORITES_KEY
    adapter = TypeAdapter(list[MenuItem])

    def list(self) -> list[MenuItem]:
        return self._read()

    def is_favorite(self, item: MenuItem) -> bool:
        return any(fav.original == item.original for fav in self._read())

    def toggle(self, item: MenuItem) -> bool:
        """Add the dish, or remove it if already saved.

        Returns:
            True if the dish is a favorite afterwards.
        """
        favorites = self._read()
        if any(fav.original == item.original for fav in favorites):
            self._persist([fav for fav in favorites if fav.original != item.original])
            return False
        self._persist([*favorites, item])
        return True


class TranslationCache(_JsonListStore):
    """The most recent translations, newest first."""

    key = CACHED_TRANSLATIONS_KEY
    adapter = TypeAdapter(list[CachedTranslation])

    def __init__(self, storage: KeyValueStorage, max_entries: int = MAX_CACHED_TRANSLATIONS) -> None:
        super().__init__(storage)
        self.max_entries = max_entries

    def save(
        self,
        menu_items: list[MenuItem],
        image_data: str,
        original_text: str,
        translated_text: str,
    ) -> CachedTranslation:
        timestamp = _now_ms()
        entry = CachedTranslation(
            id=_new_id(timestamp),
            original_text=original_text,
            translated_text=translated_text,
            menu_items=menu_items,
            image_data=image_data,
            timestamp=timestamp,
        )
        entries = [entry, *self._read()][: self.max_entries]
        while True:
            try:
                self._persist(entries)
                return entry
            except StorageQuotaError:
                if len(entries) == 1:
                    raise
                dropped = entries.pop()
                logger.info(f"Storage full, evicting cached translation {dropped.id}")

    def list(self) -> list[CachedTranslation]:
        return self._read()

    def clear(self) -> None:
        self.storage.remove_item(self.key)
