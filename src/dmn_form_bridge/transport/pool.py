"""Host-keyed connection reuse for engine calls.

Building a tuned HTTP client is the expensive part of talking to the engine,
and every evaluation talks to the same few hosts. ``ConnectionPool`` caches
one tuned client per ``(host, ssl_verify)`` pair and evicts entries lazily
once they are too old or have sat idle.

Hit/miss/created/cleaned counters are kept in a ``StatsStore`` rather than on
the pool, so a file-backed store keeps them across process restarts. They are
an audit trail only and never influence eviction.
"""

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union
from urllib.parse import urlsplit

import httpx

from dmn_form_bridge.core.config import ClientSettings

logger = logging.getLogger(__name__)

STAT_NAMES = ("hits", "misses", "created", "cleaned")


class StatsStore(ABC):
    """Storage for connection pool counters."""

    @abstractmethod
    def increment(self, name: str, amount: int = 1) -> None:
        """Atomically add ``amount`` to counter ``name``."""
        pass

    def record(self, changes: Mapping[str, int]) -> None:
        """Apply several counter changes at once."""
        for name, amount in changes.items():
            self.increment(name, amount)

    @abstractmethod
    def snapshot(self) -> Dict[str, int]:
        """Return a copy of all counters."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Set all counters back to zero."""
        pass


class InMemoryStatsStore(StatsStore):
    """Counters kept for the lifetime of the process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {name: 0 for name in STAT_NAMES}

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def reset(self) -> None:
        with self._lock:
            self._counters = {name: 0 for name in STAT_NAMES}


class JsonFileStatsStore(StatsStore):
    """Counters persisted to a JSON file once per batch of changes.

    The pool records all changes of a checkout as one batch, so each
    checkout costs at most one write.

    Attributes:
        path: Location of the JSON document.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {name: 0 for name in STAT_NAMES}
        self.writes = 0
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            for name, value in data.get("stats", {}).items():
                self._counters[name] = int(value)
            logger.debug(f"Loaded connection stats from {self.path}")
        except (json.JSONDecodeError, ValueError, TypeError, OSError) as e:
            logger.error("Failed to load connection stats", extra={"path": str(self.path), "error": str(e)})

    def _save(self) -> None:
        data = {
            "stats": self._counters,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            self.writes += 1
        except OSError as e:
            logger.error("Failed to save connection stats", extra={"path": str(self.path), "error": str(e)})

    def increment(self, name: str, amount: int = 1) -> None:
        self.record({name: amount})

    def record(self, changes: Mapping[str, int]) -> None:
        if not changes:
            return
        with self._lock:
            for name, amount in changes.items():
                self._counters[name] = self._counters.get(name, 0) + amount
            self._save()

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def reset(self) -> None:
        with self._lock:
            self._counters = {name: 0 for name in STAT_NAMES}
            self._save()


@dataclass(frozen=True)
class HttpClientOptions:
    """Client configuration tuned for one engine host.

    Attributes:
        host: Target host name.
        read_timeout: Read/write/pool timeout in seconds.
        connect_timeout: Connect timeout in seconds.
        verify: Whether TLS certificates are verified.
        headers: Default headers, including keep-alive directives.
        max_connections: Maximum open connections to the host.
        keepalive_expiry: Seconds an idle socket is kept open.
        max_redirects: Redirects followed per request.
    """

    host: str
    read_timeout: float
    connect_timeout: float
    verify: bool
    headers: Dict[str, str] = field(default_factory=dict)
    max_connections: int = 3
    keepalive_expiry: float = 60.0
    max_redirects: int = 3

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``httpx.Client``."""
        return {
            "timeout": httpx.Timeout(self.read_timeout, connect=self.connect_timeout),
            "verify": self.verify,
            "headers": dict(self.headers),
            "limits": httpx.Limits(
                max_connections=self.max_connections,
                max_keepalive_connections=self.max_connections,
                keepalive_expiry=self.keepalive_expiry,
            ),
            "http1": True,
            "http2": False,
            "follow_redirects": self.max_redirects > 0,
            "max_redirects": self.max_redirects,
        }


@dataclass
class ConnectionCacheEntry:
    """A pooled client configuration and its usage bookkeeping.

    An evicted entry is marked ``retired``; its client is closed by whoever
    drops the last lease on it.
    """

    key: str
    host: str
    options: HttpClientOptions
    created_at: float
    last_used: float
    use_count: int = 1
    client: Optional[httpx.Client] = None
    leases: int = 0
    retired: bool = False

    def is_valid(self, now: float, max_age: float, idle_timeout: float) -> bool:
        return (now - self.created_at) <= max_age and (now - self.last_used) <= idle_timeout

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None


class ConnectionPool:
    """Thread-safe cache of HTTP clients keyed by host and TLS verification.

    Clients are handed out through ``lease``. Eviction never closes a client
    that is leased; the last lease to end closes it instead.

    Attributes:
        settings: Client settings used to build new entries.
        stats: Counter store for hits, misses, created and cleaned entries.

    Example:
        >>> pool = ConnectionPool(ClientSettings())
        >>> options = pool.acquire("https://engine.example.com/engine-rest")
        >>> pool.clear()
        1
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        stats: Optional[StatsStore] = None,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize connection pool.

        Args:
            settings: Client settings (defaults when omitted).
            stats: Counter store; a JSON file store when ``settings.stats_path``
                is set, in-memory otherwise.
            transport: Transport handed to every client (tests use
                ``httpx.MockTransport``).
            clock: Monotonic time source in seconds.
        """
        self.settings = settings or ClientSettings()
        if stats is None:
            stats = JsonFileStatsStore(self.settings.stats_path) if self.settings.stats_path else InMemoryStatsStore()
        self.stats = stats
        self._transport = transport
        self._clock = clock
        self._entries: Dict[str, ConnectionCacheEntry] = {}
        self._lock = threading.Lock()

    def connection_key(self, host: str) -> str:
        """Cache key for a host under the current TLS verification setting."""
        raw = f"{host}{int(self.settings.ssl_verify)}"
        return "conn_" + hashlib.sha256(raw.encode()).hexdigest()[:32]

    def acquire(self, url: str) -> HttpClientOptions:
        """Get client options for the host of ``url``, reusing a cached entry when valid."""
        return self._checkout(url).options

    @contextmanager
    def lease(self, url: str) -> Iterator[httpx.Client]:
        """Borrow the pooled ``httpx.Client`` for the host of ``url``.

        The client stays open until the ``with`` block exits, even if the
        entry is evicted or the pool is cleared meanwhile.

        Example:
            >>> with pool.lease("https://engine.example.com/engine-rest") as client:
            ...     response = client.get("https://engine.example.com/engine-rest/version")
        """
        entry = self._checkout(url, lease=True)
        try:
            yield entry.client
        finally:
            self._release(entry)

    def _checkout(self, url: str, lease: bool = False) -> ConnectionCacheEntry:
        host = urlsplit(url).hostname or ""
        now = self._clock()
        changes: Dict[str, int] = {}
        closable: List[ConnectionCacheEntry] = []

        with self._lock:
            settings = self.settings
            key = self.connection_key(host)
            entry = self._entries.get(key)

            if entry is not None and not entry.is_valid(
                now, settings.connection_max_age, settings.connection_idle_timeout
            ):
                del self._entries[key]
                self._retire(entry, closable)
                changes["cleaned"] = 1
                entry = None

            if entry is not None:
                entry.last_used = now
                entry.use_count += 1
                changes["hits"] = 1
                logger.debug(f"Reusing connection for host: {host}")
            else:
                swept = self._sweep(now, closable)
                if swept:
                    changes["cleaned"] = changes.get("cleaned", 0) + swept
                changes["misses"] = 1
                changes["created"] = 1
                logger.debug(f"Creating new connection for host: {host}")

                entry = ConnectionCacheEntry(
                    key=key,
                    host=host,
                    options=self._build_options(host),
                    created_at=now,
                    last_used=now,
                )
                self._entries[key] = entry

            if lease:
                if entry.client is None:
                    entry.client = httpx.Client(transport=self._transport, **entry.options.client_kwargs())
                entry.leases += 1

        self._close(closable)
        self.stats.record(changes)
        return entry

    def _release(self, entry: ConnectionCacheEntry) -> None:
        with self._lock:
            entry.leases -= 1
            closable = entry.retired and entry.leases == 0
        if closable:
            logger.debug(f"Closing retired connection for host: {entry.host}")
            entry.close()

    @staticmethod
    def _retire(entry: ConnectionCacheEntry, closable: List[ConnectionCacheEntry]) -> None:
        """Mark an evicted entry. Caller holds the lock."""
        entry.retired = True
        if entry.leases == 0:
            closable.append(entry)

    @staticmethod
    def _close(entries: List[ConnectionCacheEntry]) -> None:
        for entry in entries:
            entry.close()

    def _sweep(self, now: float, closable: List[ConnectionCacheEntry]) -> int:
        """Remove expired or idle entries. Caller holds the lock."""
        stale = [
            key
            for key, entry in self._entries.items()
            if not entry.is_valid(now, self.settings.connection_max_age, self.settings.connection_idle_timeout)
        ]
        for key in stale:
            self._retire(self._entries.pop(key), closable)

        if stale:
            logger.debug(f"Cleaned {len(stale)} old connections")
        return len(stale)

    def _build_options(self, host: str) -> HttpClientOptions:
        settings = self.settings
        return HttpClientOptions(
            host=host,
            read_timeout=float(settings.api_timeout),
            connect_timeout=float(settings.connect_timeout),
            verify=settings.ssl_verify,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": settings.user_agent,
                "Connection": "keep-alive",
                "Keep-Alive": f"timeout={settings.keepalive_seconds}, max=10",
            },
            max_connections=settings.max_connections_per_host,
            keepalive_expiry=float(settings.keepalive_seconds),
            max_redirects=settings.max_redirects,
        )

    def clear(self) -> int:
        """Remove all entries.

        Leased clients are closed once their lease ends.

        Returns:
            Number of entries removed.
        """
        count = self._drain()
        logger.info(f"Manually cleared {count} connections")
        return count

    def reconfigure(self, settings: ClientSettings) -> int:
        """Swap the settings and remove all entries in one step.

        No checkout can observe the new settings alongside an entry built
        from the old ones.

        Returns:
            Number of entries removed.
        """
        count = self._drain(settings)
        logger.info(f"Reconfigured connection pool, removed {count} connections")
        return count

    def _drain(self, settings: Optional[ClientSettings] = None) -> int:
        closable: List[ConnectionCacheEntry] = []
        with self._lock:
            if settings is not None:
                self.settings = settings
            entries = list(self._entries.values())
            self._entries.clear()
            for entry in entries:
                self._retire(entry, closable)

        self._close(closable)
        if entries:
            self.stats.record({"cleaned": len(entries)})
        return len(entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get counters and per-entry details.

        Returns:
            Dictionary with ``stats``, ``active_connections`` and ``pool_details``.
        """
        now = self._clock()
        with self._lock:
            details = {
                key: {
                    "host": entry.host,
                    "age": now - entry.created_at,
                    "idle_time": now - entry.last_used,
                    "use_count": entry.use_count,
                    "leases": entry.leases,
                }
                for key, entry in self._entries.items()
            }
        return {
            "stats": self.stats.snapshot(),
            "active_connections": len(details),
            "pool_details": details,
        }
