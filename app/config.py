from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_DATABASE_URL = f"sqlite:///{(DATA_DIR / 'porters.db').as_posix()}"
DEFAULT_MAX_WORKERS = 8
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str
    max_workers: int
    log_level: str
    sql_echo: bool


def load_env(dotenv_path: str | Path | None = None) -> None:
    path = Path(dotenv_path) if dotenv_path else None
    if path and path.exists():
        load_dotenv(path)
        return
    load_dotenv()


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    database_url = os.getenv("PORTERS_DATABASE_URL", "").strip()
    if not database_url:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        database_url = DEFAULT_DATABASE_URL
    return Settings(
        database_url=database_url,
        max_workers=max(1, _env_int("PORTERS_MAX_WORKERS", DEFAULT_MAX_WORKERS)),
        log_level=(os.getenv("PORTERS_LOG_LEVEL", "INFO").strip() or "INFO").upper(),
        sql_echo=_env_flag("PORTERS_SQL_ECHO"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
