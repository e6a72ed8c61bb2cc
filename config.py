# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

STORE_BACKENDS = ("mysql", "memory")


def _maybe_load_env_file() -> None:
    """
    Load .env from the project root (same folder as this config.py).
    Never overwrites already-set environment variables.
    """
    dotenv_path = Path(__file__).resolve().parent / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path=dotenv_path, override=False)


@dataclass(frozen=True)
class MySqlConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    minsize: int = 1
    maxsize: int = 5
    connect_timeout: int = 10


@dataclass(frozen=True)
class SchedulingConfig:
    match_spacing_minutes: int = 60
    round_spacing_hours: int = 24


@dataclass(frozen=True)
class AppConfig:
    store_backend: str
    log_level: str
    mysql: MySqlConfig
    scheduling: SchedulingConfig


def _getenv(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    return v if v else default


def _int(value: str | None, var_name: str, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{var_name} must be an integer, got: {value!r}") from e


def load_config() -> AppConfig:
    _maybe_load_env_file()

    store_backend = (_getenv("BRACKET_STORE", "mysql") or "mysql").lower()
    if store_backend not in STORE_BACKENDS:
        raise ValueError(f"BRACKET_STORE must be one of {', '.join(STORE_BACKENDS)}, got: {store_backend!r}")

    host = _getenv("DB_HOST", "127.0.0.1") or "127.0.0.1"
    port = _int(_getenv("DB_PORT"), "DB_PORT", 3306)
    user = _getenv("DB_USER", "root") or "root"
    password = _getenv("DB_PASSWORD", "") or ""
    database = _getenv("DB_NAME", "brackets") or "brackets"

    minsize = _int(_getenv("DB_POOL_MIN"), "DB_POOL_MIN", 1)
    maxsize = _int(_getenv("DB_POOL_MAX"), "DB_POOL_MAX", 5)
    connect_timeout = _int(_getenv("DB_CONNECT_TIMEOUT"), "DB_CONNECT_TIMEOUT", 10)

    if minsize < 1:
        raise ValueError("DB_POOL_MIN must be >= 1")
    if maxsize < minsize:
        raise ValueError("DB_POOL_MAX must be >= DB_POOL_MIN")

    match_spacing = _int(_getenv("MATCH_SPACING_MINUTES"), "MATCH_SPACING_MINUTES", 60)
    round_spacing = _int(_getenv("ROUND_SPACING_HOURS"), "ROUND_SPACING_HOURS", 24)
    if match_spacing < 0 or round_spacing < 0:
        raise ValueError("MATCH_SPACING_MINUTES and ROUND_SPACING_HOURS must be >= 0")

    return AppConfig(
        store_backend=store_backend,
        log_level=(_getenv("LOG_LEVEL", "INFO") or "INFO").upper(),
        mysql=MySqlConfig(
            host=host,
            port=port,
            user=user,
            password=password,
            database=database,
            minsize=minsize,
            maxsize=maxsize,
            connect_timeout=connect_timeout,
        ),
        scheduling=SchedulingConfig(
            match_spacing_minutes=match_spacing,
            round_spacing_hours=round_spacing,
        ),
    )
