from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from .models import TripTicketRecord

logger = logging.getLogger(__name__)


class SinkError(Exception):
    """The record sink did not accept a trip ticket."""


class TransportError(SinkError):
    pass


class ApplicationError(SinkError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Record sink answered {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class RecordSink:
    """Client for the service that stores finished trip tickets.

    One POST per call, no retries. ``session`` only needs a
    ``post(url, json=..., headers=..., timeout=...)`` method, which lets tests
    pass a stand-in for :class:`requests.Session`.
    """

    def __init__(self, url: str, *, timeout: Optional[float] = None, session: Any = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def send(self, record: TripTicketRecord) -> int:
        payload = record.to_payload()
        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Trip ticket %s could not reach %s: %s", record.trip_ticket_no, self.url, exc)
            raise TransportError(str(exc)) from exc

        if not response.ok:
            body = response.text
            logger.warning(
                "Trip ticket %s rejected by sink with status %s", record.trip_ticket_no, response.status_code
            )
            raise ApplicationError(response.status_code, body)

        logger.info("Trip ticket %s saved (status %s)", record.trip_ticket_no, response.status_code)
        return response.status_code
