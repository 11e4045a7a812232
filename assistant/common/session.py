"""
Session State

The rolling conversation summary is the only mutable state shared across
turns. It lives on an explicit Session object backed by a storage port, so
tests and servers can choose where summaries persist.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Optional, Protocol

from .errors import StorageUnavailable

logger = logging.getLogger("assistant.common.session")

SUMMARY_KEY = "conversationSummary"


class SummaryStorage(Protocol):
    """Get/set string values by key. Implementations raise StorageUnavailable."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemorySummaryStorage:
    """Process-local storage; never fails."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileSummaryStorage:
    """One text file per key under a directory."""

    _SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, directory: str):
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        return self._dir / f"{self._SAFE_KEY.sub('_', key)}.txt"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {path}: {e}") from e


class Session:
    """
    Per-conversation context passed into the orchestrator.

    The summary is cached in memory. If the storage port fails, the session
    keeps working in-memory only for the rest of its lifetime.
    """

    def __init__(self, session_id: str = "default", storage: Optional[SummaryStorage] = None):
        self.session_id = session_id
        self._storage = storage if storage is not None else InMemorySummaryStorage()
        self._summary: Optional[str] = None
        self._storage_ok = True

    @property
    def storage_available(self) -> bool:
        return self._storage_ok

    @property
    def _key(self) -> str:
        return f"{self.session_id}:{SUMMARY_KEY}"

    def get_summary(self) -> str:
        if self._summary is None:
            self._summary = ""
            if self._storage_ok:
                try:
                    self._summary = self._storage.get(self._key) or ""
                except StorageUnavailable as e:
                    self._degrade(e)
        return self._summary

    def set_summary(self, summary: str) -> None:
        self._summary = summary or ""
        if not self._storage_ok:
            return
        try:
            self._storage.set(self._key, self._summary)
        except StorageUnavailable as e:
            self._degrade(e)

    def _degrade(self, error: StorageUnavailable) -> None:
        logger.warning(
            "Summary storage unavailable for session %s, keeping summary in memory: %s",
            self.session_id, error,
        )
        self._storage_ok = False
