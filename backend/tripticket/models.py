from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional

DEFAULT_AUTHORIZING_OFFICER = "CHRISTOPHER JOHN B. GAMBOA"


class SubmissionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    INVALID = "invalid"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TripTicketRecord:
    form_date: str
    trip_ticket_no: str
    driver_name: str
    plate_no: str
    authorized_passenger: str
    places_visited: str
    purpose: str
    authorizing_officer_name: str = DEFAULT_AUTHORIZING_OFFICER

    time_departure: str = ""
    time_arrival_at_place: str = ""
    time_departure_from_place: str = ""
    time_arrival_back: str = ""
    approx_distance_km: Optional[float] = None

    fuel_balance_in_tank: Optional[float] = None
    fuel_issued_from_stock: Optional[float] = None
    fuel_purchased_during_trip: Optional[float] = None
    fuel_total: Optional[float] = None
    fuel_used_during_trip: Optional[float] = None
    fuel_balance_end: Optional[float] = None

    gear_oil_issued: Optional[float] = None
    lub_oil_issued: Optional[float] = None
    grease_issued: Optional[float] = None

    speedometer_begin: Optional[float] = None
    speedometer_end: Optional[float] = None
    speedometer_distance: Optional[float] = None

    remarks: str = ""
    driver_signature_name: str = ""
    passenger_signature_name: str = ""

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the sink's JSON shape.

        Keys are the camelCase names used on the paper form's web version.
        Numeric fields that were left empty are omitted; text fields are
        always present.
        """
        payload: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            payload[wire_key(item.name)] = value
        return payload


def wire_key(attribute: str) -> str:
    head, *rest = attribute.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class SubmissionOutcome:
    state: SubmissionState
    message: str
    errors: Dict[str, str]

    @property
    def succeeded(self) -> bool:
        return self.state is SubmissionState.SUCCEEDED
