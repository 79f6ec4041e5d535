from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .forms import ValidationResult, get_field, validate_ticket
from .models import DEFAULT_AUTHORIZING_OFFICER, SubmissionOutcome, SubmissionState
from .sink import ApplicationError, RecordSink, TransportError
from .totals import FUEL_INPUTS, apply_fuel_totals

logger = logging.getLogger(__name__)

SAVED_MESSAGE = "Saved!"
INVALID_MESSAGE = "Please correct the highlighted fields."
TRANSPORT_MESSAGE = "Unable to reach the trip ticket service. Your entries were kept, please try again."


class SubmissionInProgress(RuntimeError):
    pass


class TripTicketForm:
    """In-memory state of one trip ticket being filled out.

    Owns the raw entries keyed by field id, keeps the fuel totals current on
    every change to a fuel input, and runs the save flow against the record
    sink. Once a save has been attempted, errors are refreshed on every edit.
    """

    def __init__(self, sink: RecordSink, *, authorizing_officer: str = DEFAULT_AUTHORIZING_OFFICER) -> None:
        self.sink = sink
        self.authorizing_officer = authorizing_officer
        self.values: Dict[str, Any] = {"authorizingOfficerName": authorizing_officer}
        self.errors: Dict[str, str] = {}
        self.state = SubmissionState.IDLE
        self.last_outcome: Optional[SubmissionOutcome] = None
        self._submit_attempted = False
        apply_fuel_totals(self.values)

    @property
    def is_submitting(self) -> bool:
        return self.state is SubmissionState.SUBMITTING

    def set_value(self, field_id: str, value: Any) -> None:
        self._store(field_id, value)
        if field_id in FUEL_INPUTS:
            apply_fuel_totals(self.values)
        self._revalidate()

    def update(self, entries: Mapping[str, Any]) -> None:
        for field_id, value in entries.items():
            self._store(field_id, value)
        if any(field_id in FUEL_INPUTS for field_id in entries):
            apply_fuel_totals(self.values)
        self._revalidate()

    def validate(self) -> ValidationResult:
        return validate_ticket(self.values, default_officer=self.authorizing_officer)

    def check(self) -> ValidationResult:
        """Validate and show the errors, as a save attempt would, without sending."""
        self._submit_attempted = True
        result = self.validate()
        self.errors = dict(result.errors)
        return result

    def submit(self) -> SubmissionOutcome:
        if self.is_submitting:
            raise SubmissionInProgress("This trip ticket is already being saved")
        self.state = SubmissionState.VALIDATING
        apply_fuel_totals(self.values)
        result = self.check()
        record = result.record
        if record is None or result.errors:
            logger.info("Trip ticket rejected by validation: %s", ", ".join(sorted(result.errors)))
            return self._finish(SubmissionState.INVALID, INVALID_MESSAGE)

        self.state = SubmissionState.SUBMITTING
        logger.info("Submitting trip ticket %s", record.trip_ticket_no)
        try:
            self.sink.send(record)
        except ApplicationError as exc:
            return self._finish(SubmissionState.FAILED, exc.body)
        except TransportError:
            return self._finish(SubmissionState.FAILED, TRANSPORT_MESSAGE)
        return self._finish(SubmissionState.SUCCEEDED, SAVED_MESSAGE)

    def _store(self, field_id: str, value: Any) -> None:
        item = get_field(field_id)
        if item.read_only:
            raise ValueError(f"'{item.label}' is calculated and cannot be edited")
        self.values[field_id] = value

    def _revalidate(self) -> None:
        if self._submit_attempted and not self.is_submitting:
            self.errors = dict(self.validate().errors)

    def _finish(self, state: SubmissionState, message: str) -> SubmissionOutcome:
        outcome = SubmissionOutcome(state=state, message=message, errors=dict(self.errors))
        self.last_outcome = outcome
        self.state = SubmissionState.IDLE
        return outcome
