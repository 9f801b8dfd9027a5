from __future__ import annotations

import json
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from .models import GeoPair

logger = structlog.get_logger()

DAY_SECONDS = 24 * 60 * 60


@dataclass(slots=True)
class DiskCacheConfig:
    path: Path
    schema_version: int = 1


class DiskCache:
    """Key-value store of JSON payloads with a per-entry expiry."""

    def __init__(self, config: DiskCacheConfig) -> None:
        self._config = config
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._config.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        self._config.path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version not in (0, self._config.schema_version):
                raise ValueError(
                    "Cache schema version mismatch: expected "
                    f"{self._config.schema_version}, got {version}"
                )
            if version == 0:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS kv_cache (
                        key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL,
                        expires_at REAL NOT NULL
                    );
                    """
                )
                conn.execute(f"PRAGMA user_version = {self._config.schema_version}")

    def get_text(self, key: str) -> str | None:
        """Stored JSON text for *key*, exactly as written, or None once expired."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value_json, expires_at FROM kv_cache WHERE key = ?",
                (key,),
            ).fetchone()
            if row is None:
                return None

            if time.time() >= row["expires_at"]:
                conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
                return None

            return str(row["value_json"])

    def get(self, key: str) -> Any | None:
        payload = self.get_text(key)
        if payload is None:
            return None
        return json.loads(payload)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO kv_cache (key, value_json, expires_at)
                VALUES (?, ?, ?)
                """,
                (key, payload, time.time() + ttl_seconds),
            )


class ObservationCache:
    """Caches the nearby-species search for the configured home coordinate only.

    The key never depends on the requested coordinates: any other point
    bypasses the cache on both read and write.
    """

    def __init__(self, store: DiskCache, home: GeoPair, ttl_seconds: int = DAY_SECONDS) -> None:
        self._store = store
        self._home = home
        self._ttl_seconds = ttl_seconds

    @property
    def key(self) -> str:
        return f"ebirdSpeciesSearch:{self._home.lat}:{self._home.lng}"

    def is_cacheable(self, point: GeoPair) -> bool:
        return point.lat == self._home.lat and point.lng == self._home.lng

    def get(self, point: GeoPair) -> list[dict[str, Any]] | None:
        if not self.is_cacheable(point):
            logger.debug("observation_cache_bypass", lat=point.lat, lng=point.lng)
            return None
        return self._store.get(self.key)

    def set(self, point: GeoPair, observations: list[dict[str, Any]]) -> bool:
        if not self.is_cacheable(point):
            return False
        self._store.set(self.key, observations, self._ttl_seconds)
        return True


class FamilyCache:
    """Family common name by species code; assignments rarely change."""

    def __init__(self, store: DiskCache, ttl_seconds: int = 30 * DAY_SECONDS) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def key(species_code: str) -> str:
        return f"{species_code}-family"

    def get(self, species_code: str) -> str | None:
        value = self._store.get(self.key(species_code))
        return value if isinstance(value, str) and value else None

    def set(self, species_code: str, family: str) -> None:
        self._store.set(self.key(species_code), family, self._ttl_seconds)


class TaxonFindCache:
    """Remote name completions keyed by the query text."""

    def __init__(self, store: DiskCache, ttl_seconds: int = DAY_SECONDS) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def key(query: str) -> str:
        return f"taxonFind:{query}"

    def get(self, query: str) -> list[dict[str, str]] | None:
        return self._store.get(self.key(query))

    def set(self, query: str, candidates: list[dict[str, str]]) -> None:
        self._store.set(self.key(query), candidates, self._ttl_seconds)


__all__ = [
    "DiskCache",
    "DiskCacheConfig",
    "FamilyCache",
    "ObservationCache",
    "TaxonFindCache",
]
