"""Configuration helpers for backend runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class BackendSettings:
    database_url: str | None
    host: str
    port: int
    log_level: str
    history_limit: int


def load_settings() -> BackendSettings:
    port_raw = os.getenv("QUESTCOMBAT_PORT", "8000")
    history_raw = os.getenv("QUESTCOMBAT_HISTORY_LIMIT", "10")
    return BackendSettings(
        database_url=os.getenv("QUESTCOMBAT_DATABASE_URL") or None,
        host=os.getenv("QUESTCOMBAT_HOST", "127.0.0.1"),
        port=int(port_raw),
        log_level=os.getenv("QUESTCOMBAT_LOG_LEVEL", "INFO").upper(),
        history_limit=int(history_raw),
    )


def configure_logging(settings: BackendSettings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
