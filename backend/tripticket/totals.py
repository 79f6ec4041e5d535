from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, MutableMapping

from .forms import parse_number

FUEL_INPUTS: tuple[str, ...] = (
    "fuelBalanceInTank",
    "fuelIssuedFromStock",
    "fuelPurchasedDuringTrip",
    "fuelUsedDuringTrip",
)
FUEL_OUTPUTS: tuple[str, ...] = ("fuelTotal", "fuelBalanceEnd")


@dataclass(frozen=True)
class FuelTotals:
    total: float
    balance_end: float

    def as_dict(self) -> dict[str, float | None]:
        return {
            "fuelTotal": None if not math.isfinite(self.total) else self.total,
            "fuelBalanceEnd": None if not math.isfinite(self.balance_end) else self.balance_end,
        }


def compute_fuel_totals(
    balance_in_tank: Any = None,
    issued_from_stock: Any = None,
    purchased_during_trip: Any = None,
    used_during_trip: Any = None,
) -> FuelTotals:
    """Gasoline block of the paper ticket: a + b + c = TOTAL, TOTAL - d = e.

    Empty inputs count as zero. An input that is not a number poisons the
    outputs that depend on it with NaN.
    """
    total = _amount(balance_in_tank) + _amount(issued_from_stock) + _amount(purchased_during_trip)
    return FuelTotals(total=total, balance_end=total - _amount(used_during_trip))


def apply_fuel_totals(values: MutableMapping[str, Any]) -> FuelTotals:
    """Recompute the derived fuel fields in place.

    An output that is not a finite number is not written, so the field keeps
    whatever value it had before.
    """
    totals = compute_fuel_totals(*(values.get(key) for key in FUEL_INPUTS))
    if math.isfinite(totals.total):
        values["fuelTotal"] = totals.total
    if math.isfinite(totals.balance_end):
        values["fuelBalanceEnd"] = totals.balance_end
    return totals


def _amount(value: Any) -> float:
    try:
        number = parse_number(value)
    except ValueError:
        return math.nan
    return 0.0 if number is None else number
