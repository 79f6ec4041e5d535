from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .models import DEFAULT_AUTHORIZING_OFFICER

DEFAULT_SINK_URL = "http://172.18.128.1:3000/trip-tickets"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    sink_url: str = DEFAULT_SINK_URL
    sink_timeout: Optional[float] = None
    authorizing_officer: str = DEFAULT_AUTHORIZING_OFFICER
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        sink_url = env.get("TRIP_TICKET_SINK_URL", "").strip() or DEFAULT_SINK_URL
        officer = env.get("TRIP_TICKET_AUTHORIZING_OFFICER", "").strip() or DEFAULT_AUTHORIZING_OFFICER

        raw_timeout = env.get("TRIP_TICKET_SINK_TIMEOUT", "").strip()
        timeout: Optional[float] = None
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ValueError(f"TRIP_TICKET_SINK_TIMEOUT must be a number of seconds, got '{raw_timeout}'") from None
            if timeout <= 0:
                raise ValueError("TRIP_TICKET_SINK_TIMEOUT must be greater than zero")

        log_level = env.get("TRIP_TICKET_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Unknown log level '{log_level}'")

        return cls(
            sink_url=sink_url,
            sink_timeout=timeout,
            authorizing_officer=officer,
            log_level=log_level,
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
