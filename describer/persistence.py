import json
import logging
import os
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from describer.models import HistoryEntry, Settings

logger = logging.getLogger(__name__)

NAMESPACE = "generator-storage"
DEFAULT_DATA_DIR = Path.home() / ".describer"
MAX_HISTORY = 10


def default_path() -> Path:
    return DEFAULT_DATA_DIR / f"{NAMESPACE}.json"


class LocalStore:
    """
    Settings and recent single-image history persisted as one JSON document.

    With ``path=None`` nothing touches the disk.  History holds at most
    ``MAX_HISTORY`` entries, newest first.
    """

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path else None
        self._settings = Settings()
        self._history: List[HistoryEntry] = []
        self._lock = threading.Lock()
        self._load()

    def _load(self):
        if self.path is None or not self.path.exists() or self.path.stat().st_size == 0:
            logger.info("No stored settings found; starting fresh.")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError(f"expected a JSON object, got {type(data).__name__}")
            self._settings = Settings(**data.get("settings", {}))
            self._history = [HistoryEntry(**entry) for entry in data.get("history", [])][:MAX_HISTORY]
        except (OSError, json.JSONDecodeError, ValidationError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            self._settings = Settings()
            self._history = []
            return
        logger.info(f"Loaded settings and {len(self._history)} history entries from {self.path}")

    def _write(self):
        if self.path is None:
            return
        data = {
            "settings": self._settings.model_dump(),
            "history": [entry.model_dump() for entry in self._history],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(self.path.name + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, self.path)

    def load_settings(self) -> Settings:
        with self._lock:
            return self._settings.model_copy()

    def save_settings(self, settings: Settings) -> None:
        with self._lock:
            self._settings = settings.model_copy()
            self._write()

    def history(self) -> List[HistoryEntry]:
        with self._lock:
            return list(self._history)

    def append_history(self, entry: HistoryEntry) -> None:
        with self._lock:
            self._history = [entry] + self._history[:MAX_HISTORY - 1]
            self._write()

    def clear_history(self) -> None:
        with self._lock:
            self._history = []
            self._write()
