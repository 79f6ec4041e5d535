from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.tripticket import TripTicketApp
from backend.tripticket.config import Settings
from backend.tripticket.sink import RecordSink

SINK_URL = "http://sink.test/trip-tickets"


class FakeResponse:
    def __init__(self, status_code: int = 201, text: str = "") -> None:
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    """Records every POST and answers with queued responses (201 by default)."""

    def __init__(self, *responses: FakeResponse, error: Optional[Exception] = None) -> None:
        self.responses = list(responses)
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return FakeResponse()


def valid_entries() -> dict[str, Any]:
    return {
        "formDate": "2025-03-14",
        "tripTicketNo": "100-20-01-019",
        "driverName": "Ramon Dela Cruz",
        "plateNo": "SKT 482",
        "authorizedPassenger": "Engr. Liza Santos",
        "placesVisited": "Barangay Caniogan",
        "purpose": "Site inspection of drainage works",
    }


@pytest.fixture()
def settings() -> Settings:
    return Settings(sink_url=SINK_URL)


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def sink(fake_session: FakeSession) -> RecordSink:
    return RecordSink(SINK_URL, session=fake_session)


@pytest.fixture()
def service(settings: Settings, fake_session: FakeSession) -> TripTicketApp:
    return TripTicketApp.create(settings, session=fake_session)
