"""JSON key/value storage for monitor, budget and configuration state."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

PERFORMANCE_METRICS_KEY = "performance_metrics"
COST_TRACKER_KEY = "cost_tracker"
STRATEGY_ADJUSTMENTS_KEY = "strategy_adjustments"


class LocalStorage:
    """
    Stores JSON values under string keys.

    With a directory each key is a `<key>.json` file; without one values
    live in memory only. Unreadable or corrupt files read as missing.
    """

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else None
        self._memory: dict[str, str] = {}
        if self.directory:
            self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        if self.directory is None:
            raw = self._memory.get(key)
        else:
            path = self._path(key)
            if not path.exists():
                return default
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Could not read %s: %s", path, e)
                return default

        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt value under %s: %s", key, e)
            return default

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        if self.directory is None:
            self._memory[key] = raw
            return
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(raw, encoding="utf-8")
        tmp.replace(path)

    def persist(self, key: str, value: Any) -> bool:
        """
        Like `set`, but a failed write is logged instead of raised.

        Used for bookkeeping state whose loss must not fail the caller.
        Returns whether the value was stored.
        """
        try:
            self.set(key, value)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not persist %s: %s", key, e)
            return False
        return True

    def remove(self, key: str) -> None:
        if self.directory is None:
            self._memory.pop(key, None)
        else:
            self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if self.directory is None:
            return sorted(self._memory)
        return sorted(p.stem for p in self.directory.glob("*.json"))
