from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .config import Settings
from .export import export_ticket
from .sink import RecordSink
from .tickets import TripTicketForm


@dataclass
class TripTicketApp:
    settings: Settings
    sink: RecordSink

    @classmethod
    def create(cls, settings: Optional[Settings] = None, *, session: Any = None) -> "TripTicketApp":
        settings = settings or Settings.from_env()
        sink = RecordSink(settings.sink_url, timeout=settings.sink_timeout, session=session)
        return cls(settings=settings, sink=sink)

    def new_form(self) -> TripTicketForm:
        return TripTicketForm(self.sink, authorizing_officer=self.settings.authorizing_officer)

    def export_form(self, form: TripTicketForm, *, generated_at: Optional[datetime] = None) -> tuple[str, bytes]:
        result = form.check()
        if result.record is None or result.errors:
            raise ValueError("Complete the required fields before exporting the trip ticket.")
        return export_ticket(result.record, generated_at=generated_at)
