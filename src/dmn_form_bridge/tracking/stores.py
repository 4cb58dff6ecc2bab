"""Key/value stores backing the process instance tracker.

Each store offers ``get``/``set``/``delete`` with an optional time-to-live.
A store that cannot serve a request raises ``StoreUnavailableError`` so the
tracker can move on to the next tier.
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """Raised when a correlation store cannot be read or written."""


class CorrelationStore(ABC):
    """Abstract base class for correlation stores."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None if absent or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl`` seconds if given."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        pass


class InMemoryStore(CorrelationStore):
    """Process-local store with lazy expiry.

    Expired items are dropped when read and swept from the whole store on
    writes, at most once per ``sweep_interval`` seconds.

    Attributes:
        clock: Wall-clock time source in seconds.
        sweep_interval: Minimum seconds between sweeps (0 sweeps on every write).
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60.0):
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._lock = threading.Lock()
        self._items: Dict[str, Tuple[str, Optional[float]]] = {}
        self._last_sweep = clock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and self.clock() >= expires_at:
                del self._items[key]
                logger.debug(f"Expired correlation entry: {key}")
                return None
            return value

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        now = self.clock()
        expires_at = now + ttl if ttl is not None else None
        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)
            self._items[key] = (value, expires_at)

    def _sweep(self, now: float) -> int:
        """Remove expired items. Caller holds the lock."""
        expired = [
            key for key, (_, expires_at) in self._items.items() if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._items[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Swept {len(expired)} expired correlation entries")
        return len(expired)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class JsonFileStore(CorrelationStore):
    """Durable store persisted to a JSON file after every change.

    The file is read once on construction. A corrupt file is logged and
    treated as empty; a failed write raises ``StoreUnavailableError``.
    Expired items are left out of every write.

    Attributes:
        path: Location of the JSON document.
        clock: Wall-clock time source in seconds.
    """

    def __init__(self, path: Union[str, Path], clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self.clock = clock
        self._lock = threading.Lock()
        self._items: Dict[str, Dict[str, Optional[float]]] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._items = {
                key: {"value": str(item["value"]), "expires_at": item.get("expires_at")}
                for key, item in data.get("entries", {}).items()
            }
            logger.debug(f"Loaded {len(self._items)} correlation entries from {self.path}")
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError, OSError) as e:
            logger.error("Failed to load correlation store", extra={"path": str(self.path), "error": str(e)})
            self._items = {}

    def _save(self) -> None:
        now = self.clock()
        self._items = {
            key: item
            for key, item in self._items.items()
            if item.get("expires_at") is None or now < item["expires_at"]
        }
        data = {
            "entries": self._items,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at = item.get("expires_at")
            if expires_at is not None and self.clock() >= expires_at:
                return None
            return item["value"]

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._items[key] = {
                "value": value,
                "expires_at": self.clock() + ttl if ttl is not None else None,
            }
            self._save()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._items.pop(key, None) is not None:
                self._save()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
