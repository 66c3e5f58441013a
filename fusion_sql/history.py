"""Query history: append-only, in memory, optionally mirrored to a JSON file.

Entries carry the executed SQL, target URL and username. Passwords are
never part of an entry.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel

from fusion_sql.config import settings
from fusion_sql.models import QueryHistoryEntry

log = logging.getLogger(__name__)


class HistoryFile(BaseModel):
    entries: list[QueryHistoryEntry] = []


class HistoryStore:
    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else None
        self._entries: list[QueryHistoryEntry] = self._load()

    # ── Persistence ──

    def _load(self) -> list[QueryHistoryEntry]:
        if self._path is None or not self._path.exists():
            return []
        raw = json.loads(self._path.read_text())
        entries = HistoryFile(**raw).entries
        log.info("Loaded %d history entries from %s", len(entries), self._path)
        return entries

    def _save(self) -> None:
        if self._path is None:
            return
        data = HistoryFile(entries=self._entries).model_dump(mode="json", by_alias=True)
        self._path.write_text(json.dumps(data, indent=2) + "\n")

    # ── API ──

    def add(self, entry: QueryHistoryEntry) -> QueryHistoryEntry:
        self._entries.append(entry)
        self._save()
        return entry

    def list_for_user(self, username: str, limit: int | None = None) -> list[QueryHistoryEntry]:
        """Most recent entries for ``username``, newest first."""
        if limit is None:
            limit = settings.history.default_limit
        limit = max(1, min(limit, settings.history.max_limit))
        # insertion index breaks timestamp ties so later appends still come first
        mine = [(i, e) for i, e in enumerate(self._entries) if e.username == username]
        mine.sort(key=lambda pair: (pair[1].executed_at, pair[0]), reverse=True)
        return [e for _, e in mine[:limit]]

    def __len__(self) -> int:
        return len(self._entries)


_store: HistoryStore | None = None


def get_store() -> HistoryStore:
    global _store
    if _store is None:
        _store = HistoryStore(settings.history.path or None)
    return _store


def set_store(store: HistoryStore | None) -> None:
    global _store
    _store = store
