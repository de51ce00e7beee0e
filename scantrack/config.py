"""TOML configuration loader for Scan & Track."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

DEFAULT_DB_PATH = "~/.config/scantrack/inventory.db"
DEFAULT_PRODUCT_URL = "https://world.openfoodfacts.org/api/v0/product/{code}.json"
DEFAULT_SEARCH_URL = "https://jp.openfoodfacts.org/cgi/search.pl"


@dataclass
class DatabaseConfig:
    path: str = DEFAULT_DB_PATH


@dataclass
class LookupConfig:
    product_url: str = DEFAULT_PRODUCT_URL
    search_url: str = DEFAULT_SEARCH_URL
    page_size: int = 24
    timeout: float = 10.0


@dataclass
class ViewConfig:
    candidates_per_page: int = 10
    default_expiry_days: int = 7


@dataclass
class ReminderConfig:
    schedule: str = "0 9 * * *"
    days_ahead: int = 1
    cron_secret: str = ""


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3001
    debug: bool = False


@dataclass
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    lookup: LookupConfig = field(default_factory=LookupConfig)
    view: ViewConfig = field(default_factory=ViewConfig)
    reminder: ReminderConfig = field(default_factory=ReminderConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The database path and the cron secret can be overridden via environment
    variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    dbs = raw.get("database", {})
    lkp = raw.get("lookup", {})
    viw = raw.get("view", {})
    rmd = raw.get("reminder", {})
    srv = raw.get("server", {})

    # Environment variable → config file → default
    db_path = os.environ.get("SCANTRACK_DB_PATH", "") or dbs.get(
        "path", DEFAULT_DB_PATH
    )
    # Config file → environment variable
    cron_secret = rmd.get("cron_secret", "") or os.environ.get("CRON_SECRET", "")

    return AppConfig(
        database=DatabaseConfig(path=db_path),
        lookup=LookupConfig(
            product_url=lkp.get("product_url", DEFAULT_PRODUCT_URL),
            search_url=lkp.get("search_url", DEFAULT_SEARCH_URL),
            page_size=lkp.get("page_size", 24),
            timeout=lkp.get("timeout", 10.0),
        ),
        view=ViewConfig(
            candidates_per_page=viw.get("candidates_per_page", 10),
            default_expiry_days=viw.get("default_expiry_days", 7),
        ),
        reminder=ReminderConfig(
            schedule=rmd.get("schedule", "0 9 * * *"),
            days_ahead=rmd.get("days_ahead", 1),
            cron_secret=cron_secret,
        ),
        server=ServerConfig(
            host=srv.get("host", "127.0.0.1"),
            port=srv.get("port", 3001),
            debug=srv.get("debug", False),
        ),
    )
