from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .models import DEFAULT_AUTHORIZING_OFFICER, TripTicketRecord

REQUIRED_MESSAGE = "Required"
NUMBER_MESSAGE = "Expected a number"
TEXT_MESSAGE = "Expected text"


class FieldType(str, Enum):
    DATE = "date"
    TEXT = "text"
    NUMBER = "number"


@dataclass(frozen=True)
class TicketField:
    id: str
    label: str
    field_type: FieldType = FieldType.TEXT
    section: str = "driver"
    required: bool = False
    read_only: bool = False
    multiline: bool = False
    placeholder: str = ""

    @property
    def attribute(self) -> str:
        return re.sub(r"([A-Z])", r"_\1", self.id).lower()


SECTION_TITLES: dict[str, str] = {
    "header": "",
    "official": "A. To be filled out by the Administrative Official Authorizing Official Travel:",
    "driver": "B. To be filled out by the Driver:",
    "fuel": "6. Gasoline issued, purchased and consumed (liters)",
    "oil": "",
    "speedometer": "10. Speedometer readings, if any:",
    "certification": "",
}


FORM_DEFINITION: tuple[TicketField, ...] = (
    TicketField("formDate", "Date", FieldType.DATE, section="header", required=True),
    TicketField(
        "tripTicketNo",
        "TRIP TICKET No.",
        section="header",
        required=True,
        placeholder="e.g. 100-20-01-019",
    ),
    TicketField("driverName", "1. Name of driver of the vehicle", section="official", required=True),
    TicketField("plateNo", "2. Government car to be used, Plate No.", section="official", required=True),
    TicketField("authorizedPassenger", "3. Name of authorized passenger", section="official", required=True),
    TicketField("placesVisited", "4. Place or places to be visited/inspected", section="official", required=True),
    TicketField("purpose", "5. Purpose", section="official", required=True),
    TicketField("authorizingOfficerName", "OIC, OGS - Motorpool Division", section="official"),
    TicketField("timeDeparture", "1. Time of Departure from Office/Garage", placeholder="e.g. 8:00 AM"),
    TicketField("timeArrivalAtPlace", "2. Time of arrival at (per No. 4 below)", placeholder="e.g. 9:15 AM"),
    TicketField("timeDepartureFromPlace", "3. Time and departure from (per No. 4)"),
    TicketField("timeArrivalBack", "4. Time of arrival back to Office/Garage"),
    TicketField("approxDistanceKm", "5. Approximate distance travelled (to and from) (km)", FieldType.NUMBER),
    TicketField("fuelBalanceInTank", "a. Balance in tank", FieldType.NUMBER, section="fuel"),
    TicketField("fuelIssuedFromStock", "b. Issued by office from stock", FieldType.NUMBER, section="fuel"),
    TicketField("fuelPurchasedDuringTrip", "c. Add-purchased during trip", FieldType.NUMBER, section="fuel"),
    TicketField("fuelTotal", "TOTAL", FieldType.NUMBER, section="fuel", read_only=True),
    TicketField("fuelUsedDuringTrip", "d. Deduct: Used during the trip", FieldType.NUMBER, section="fuel"),
    TicketField(
        "fuelBalanceEnd",
        "e. Balance in tank at the end of the trip",
        FieldType.NUMBER,
        section="fuel",
        read_only=True,
    ),
    TicketField("gearOilIssued", "7. Gear oil issued (liters)", FieldType.NUMBER, section="oil"),
    TicketField("lubOilIssued", "8. Lub. Oil issued (liters)", FieldType.NUMBER, section="oil"),
    TicketField("greaseIssued", "9. Grease issued (liters)", FieldType.NUMBER, section="oil"),
    TicketField("speedometerBegin", "at the beginning of trip (km)", FieldType.NUMBER, section="speedometer"),
    TicketField("speedometerEnd", "at the end of the trip (km)", FieldType.NUMBER, section="speedometer"),
    TicketField(
        "speedometerDistance",
        "distance travelled (per 5 above) (km)",
        FieldType.NUMBER,
        section="speedometer",
    ),
    TicketField("remarks", "11. Remarks", section="certification", multiline=True),
    TicketField("driverSignatureName", "(Driver)", section="certification"),
    TicketField("passengerSignatureName", "(Name of Passenger)", section="certification"),
)

_FIELDS_BY_ID: dict[str, TicketField] = {item.id: item for item in FORM_DEFINITION}


@dataclass
class ValidationResult:
    record: Optional[TripTicketRecord] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.record is not None and not self.errors


def get_form_definition() -> tuple[TicketField, ...]:
    return FORM_DEFINITION


def get_field(field_id: str) -> TicketField:
    try:
        return _FIELDS_BY_ID[field_id]
    except KeyError:
        raise KeyError(f"Unknown trip ticket field '{field_id}'") from None


def editable_fields() -> tuple[TicketField, ...]:
    return tuple(item for item in FORM_DEFINITION if not item.read_only)


def list_sections() -> list[tuple[str, tuple[TicketField, ...]]]:
    return [
        (section, tuple(item for item in FORM_DEFINITION if item.section == section))
        for section in SECTION_TITLES
    ]


def validate_ticket(
    values: Mapping[str, Any],
    *,
    default_officer: str = DEFAULT_AUTHORIZING_OFFICER,
) -> ValidationResult:
    """Check raw form entries and build a typed record.

    Every problem is reported in ``errors`` keyed by field id; nothing here
    raises for user input. Keys that are not part of the form are ignored.
    """
    cleaned: Dict[str, Any] = {}
    errors: Dict[str, str] = {}

    for item in FORM_DEFINITION:
        if item.id == "authorizingOfficerName" and item.id not in values:
            cleaned[item.attribute] = default_officer
            continue
        try:
            cleaned[item.attribute] = _coerce_value(item, values.get(item.id))
        except ValueError as exc:
            errors[item.id] = str(exc)

    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(record=TripTicketRecord(**cleaned))


def parse_number(value: Any) -> Optional[float]:
    """Return ``None`` for an empty entry, a float for a numeric one.

    Raises ``ValueError`` for anything else, including booleans and
    non-finite values.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(NUMBER_MESSAGE)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if "_" in value:
            raise ValueError(NUMBER_MESSAGE)
    elif not isinstance(value, (int, float)):
        raise ValueError(NUMBER_MESSAGE)
    try:
        number = float(value)
    except (OverflowError, ValueError):
        raise ValueError(NUMBER_MESSAGE) from None
    if not math.isfinite(number):
        raise ValueError(NUMBER_MESSAGE)
    return number


def _coerce_value(item: TicketField, value: Any) -> Any:
    if item.field_type is FieldType.NUMBER:
        return parse_number(value)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValueError(TEXT_MESSAGE)
    cleaned = value.strip()
    if item.required and not cleaned:
        raise ValueError(REQUIRED_MESSAGE)
    return cleaned
