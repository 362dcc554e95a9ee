"""
Runtime configuration for LinkKeep
==================================

Simple settings module that reads from environment variables (only here),
and exposes a stable `settings` object for the rest of the codebase.
Avoid reading env vars anywhere else; import from this module instead.
(The storage factory is the one exception: it re-reads its two variables at
call time so tests can switch backends.)

Storage
-------
- LINKKEEP_STORAGE_BACKEND  : "lmdb" (default) or "memory"
- LINKKEEP_DB_PATH          : LMDB data directory (default "./lmdb_data")
- LINKKEEP_MAP_SIZE_MB      : LMDB map size in MiB; default 1024; at least 1
- LINKKEEP_RECLAIM_INTERVAL : seconds between reclaim passes; default 300; 0 disables

Scraping / requests
-------------------
- LINKKEEP_SCRAPE_TIMEOUT   : seconds allowed for one metadata fetch (default 30)
- LINKKEEP_REQUEST_TIMEOUT  : seconds allowed for one store call from HTTP (default 10)

Logging
-------
- LINKKEEP_LOG_LEVEL        : root log level name (default "INFO")
"""

import os


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


class _Settings:
    # -------- Storage --------
    STORAGE_BACKEND: str = os.getenv("LINKKEEP_STORAGE_BACKEND", "lmdb").strip().lower()
    DB_PATH: str = os.getenv("LINKKEEP_DB_PATH", "./lmdb_data")
    MAP_SIZE: int = max(1, _get_int("LINKKEEP_MAP_SIZE_MB", 1024)) * 1024 * 1024
    RECLAIM_INTERVAL: float = max(0.0, _get_float("LINKKEEP_RECLAIM_INTERVAL", 300.0))

    # -------- Scraping / requests --------
    SCRAPE_TIMEOUT: float = max(1.0, _get_float("LINKKEEP_SCRAPE_TIMEOUT", 30.0))
    REQUEST_TIMEOUT: float = max(0.1, _get_float("LINKKEEP_REQUEST_TIMEOUT", 10.0))

    # -------- Logging --------
    LOG_LEVEL: str = os.getenv("LINKKEEP_LOG_LEVEL", "INFO").strip().upper()


settings = _Settings()
