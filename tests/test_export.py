from __future__ import annotations

import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from backend.tripticket import TripTicketApp
from backend.tripticket.export import export_ticket
from backend.tripticket.forms import ValidationResult, validate_ticket
from conftest import valid_entries


def _cells(payload: bytes) -> dict[str, object]:
    workbook = load_workbook(io.BytesIO(payload))
    sheet = workbook["Trip Ticket"]
    labelled: dict[str, object] = {}
    for row in sheet.iter_rows(min_col=1, max_col=2, values_only=True):
        label, value = row
        if isinstance(label, str):
            labelled[label] = value
    return labelled


def test_export_lays_out_ticket() -> None:
    entries = valid_entries()
    entries.update(
        {
            "fuelBalanceInTank": "10",
            "fuelIssuedFromStock": "5",
            "fuelTotal": 15,
            "fuelUsedDuringTrip": "8.5",
            "fuelBalanceEnd": 6.5,
            "driverSignatureName": "Ramon Dela Cruz",
        }
    )
    record = validate_ticket(entries).record

    filename, payload = export_ticket(record, generated_at=datetime(2025, 3, 14, 17, 5))

    assert filename == "trip-ticket-100-20-01-019-20250314-1705.xlsx"
    cells = _cells(payload)
    assert cells["OFFICE OF GENERAL SERVICES"] is None
    assert cells["TRIP TICKET No."] == "100-20-01-019"
    assert cells["1. Name of driver of the vehicle"] == "Ramon Dela Cruz"
    assert cells["TOTAL"] == 15
    assert cells["e. Balance in tank at the end of the trip"] == 6.5
    assert cells["7. Gear oil issued (liters)"] is None
    assert cells["OIC, OGS - Motorpool Division"] == "CHRISTOPHER JOHN B. GAMBOA"


def test_export_requires_valid_form(service: TripTicketApp) -> None:
    form = service.new_form()
    form.set_value("driverName", "Ramon Dela Cruz")
    with pytest.raises(ValueError):
        service.export_form(form)
    assert "tripTicketNo" in form.errors


def test_export_from_form(service: TripTicketApp) -> None:
    form = service.new_form()
    form.update(valid_entries())
    filename, payload = service.export_form(form)
    assert filename.startswith("trip-ticket-100-20-01-019-")
    assert _cells(payload)["TOTAL"] == 0


def test_export_without_record_is_refused(service: TripTicketApp, monkeypatch: pytest.MonkeyPatch) -> None:
    form = service.new_form()
    form.update(valid_entries())
    monkeypatch.setattr(form, "validate", lambda: ValidationResult())
    with pytest.raises(ValueError):
        service.export_form(form)
