"""
Persistent local activity log.

Small JSON-file key/value store used by the CLI to remember upload history.
The upload pipeline never reads it; callers record results after an upload
finishes.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ActivityLog:
    """
    Thread-safe JSON-backed key/value store with append-only lists.

    Values are JSON-compatible objects. `append` treats the key as a list and
    adds a timestamped entry, trimming the oldest entries beyond max_entries.
    """

    def __init__(self, log_path: Path, max_entries: int = 100):
        """
        Initialize activity log.

        Args:
            log_path: Path to JSON file (typically ~/.netstore/activity.json)
            max_entries: Maximum entries kept per appended list
        """
        self._log_path = Path(log_path)
        self._max_entries = max_entries
        self._lock = threading.RLock()
        self._data: dict[str, Any] = {}

        self._load_from_disk()

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """
        Get a stored value.

        Args:
            key: Entry key
            default: Value returned when the key is missing

        Returns:
            Stored value or default
        """
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Store a value and persist to disk.

        Args:
            key: Entry key
            value: JSON-compatible value
        """
        with self._lock:
            self._data[key] = value
        self._save_to_disk()

    def append(self, key: str, entry: dict[str, Any]) -> dict[str, Any]:
        """
        Append a timestamped entry to the list stored under key.

        Args:
            key: List key (e.g. 'uploads')
            entry: JSON-compatible entry

        Returns:
            The stored entry including its 'recorded_at' timestamp
        """
        record = dict(entry)
        record.setdefault('recorded_at', datetime.now(timezone.utc).isoformat())

        with self._lock:
            entries = self._data.get(key)
            if not isinstance(entries, list):
                entries = []
            entries.append(record)
            self._data[key] = entries[-self._max_entries:]

        self._save_to_disk()
        return record

    def _load_from_disk(self) -> bool:
        """
        Load entries from the JSON file.

        Returns:
            True if load succeeded, False if file missing or corrupted
        """
        if not self._log_path.exists():
            logger.debug(f"Activity log not found at {self._log_path}, starting empty")
            return False

        try:
            with open(self._log_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load activity log from {self._log_path}: {e}, starting empty")
            return False

        if not isinstance(data, dict):
            logger.warning(f"Activity log at {self._log_path} is not an object, starting empty")
            return False

        with self._lock:
            self._data = data
        return True

    def _save_to_disk(self) -> None:
        """
        Persist entries to the JSON file.

        Continues in memory only if the save fails.
        """
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                data = dict(self._data)
            with open(self._log_path, 'w') as f:
                json.dump(data, f, indent=2)
        except (IOError, OSError) as e:
            logger.warning(
                f"Failed to save activity log to {self._log_path}: {e}, "
                "continuing with in-memory log only"
            )
