"""
Commuter allowance (Entfernungspauschale) calculation.

The allowance is tiered by one-way distance: the first THRESHOLD_KM are paid
at the standard rate, every further km at the extended rate, per working day.
Rates belong to a tax year and can be loaded from YAML, e.g.:

    2024:
      standardRate: 0.30
      extendedRate: 0.38
      thresholdKm: 20
      defaultWorkingDays: 230
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Optional, TYPE_CHECKING, Union

import yaml

from .errors import ConfigError

if TYPE_CHECKING:
    from .collection_view import TripCollectionView

CENT = Decimal("0.01")


def _to_decimal(value: Union[int, float, str, Decimal]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MileageRates:
    """Statutory rates for one tax year."""

    standard_rate: Decimal = Decimal("0.30")  # EUR/km for the first threshold_km
    extended_rate: Decimal = Decimal("0.38")  # EUR/km beyond threshold_km
    threshold_km: Decimal = Decimal("20")
    default_working_days: int = 230


DEFAULT_RATES = MileageRates()


def load_rates(filename: Union[str, Path], tax_year: int) -> MileageRates:
    """Load the rates for one tax year from a YAML rates file."""
    with open(filename, "r") as fp:
        data = yaml.load(fp, Loader=yaml.SafeLoader) or {}

    block = data.get(tax_year) or data.get(str(tax_year))
    if block is None:
        raise ConfigError(f"No mileage rates for tax year {tax_year} in {filename}")

    try:
        return MileageRates(
            standard_rate=_to_decimal(block.get("standardRate", DEFAULT_RATES.standard_rate)),
            extended_rate=_to_decimal(block.get("extendedRate", DEFAULT_RATES.extended_rate)),
            threshold_km=_to_decimal(block.get("thresholdKm", DEFAULT_RATES.threshold_km)),
            default_working_days=int(
                block.get("defaultWorkingDays", DEFAULT_RATES.default_working_days)
            ),
        )
    except (ArithmeticError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid mileage rates for tax year {tax_year}: {e}") from e


@dataclass(frozen=True)
class MileageResult:
    """Deductible amounts in EUR, rounded to cents."""

    total_amount: Decimal
    standard_amount: Decimal
    extended_amount: Decimal
    working_days: int
    one_way_distance_km: Decimal

    @classmethod
    def zero(cls, working_days: int, one_way_distance_km: Decimal) -> "MileageResult":
        nothing = Decimal("0.00")
        return cls(nothing, nothing, nothing, working_days, one_way_distance_km)


class MileageAllowanceCalculator:
    """Pure calculator; rates are injected so a new tax year needs no code change."""

    def __init__(self, rates: MileageRates = DEFAULT_RATES):
        self.rates = rates

    def calculate(
        self,
        one_way_distance_km: Union[int, float, Decimal],
        working_days: Optional[int] = None,
    ) -> MileageResult:
        """Allowance for a one-way commute distance over a number of working days."""
        if working_days is None:
            working_days = self.rates.default_working_days
        distance = _to_decimal(one_way_distance_km)
        if distance <= 0:
            return MileageResult.zero(working_days, distance)

        standard_km = min(distance, self.rates.threshold_km)
        extended_km = max(Decimal("0"), distance - self.rates.threshold_km)

        standard_amount = _money(standard_km * self.rates.standard_rate * working_days)
        extended_amount = _money(extended_km * self.rates.extended_rate * working_days)

        return MileageResult(
            total_amount=standard_amount + extended_amount,
            standard_amount=standard_amount,
            extended_amount=extended_amount,
            working_days=working_days,
            one_way_distance_km=distance,
        )

    def from_total_distance(
        self,
        total_business_distance_km: Union[int, float, Decimal],
        working_days: Optional[int] = None,
    ) -> MileageResult:
        """
        Allowance from a year's total business distance.

        The total is treated as round trips, so the average one-way distance
        per working day is (total / 2) / working_days.
        """
        if working_days is None:
            working_days = self.rates.default_working_days
        total = _to_decimal(total_business_distance_km)
        if total <= 0 or working_days <= 0:
            return MileageResult.zero(working_days, Decimal("0"))

        one_way_km = (total / 2) / working_days
        return self.calculate(one_way_km, working_days)

    def for_year(
        self,
        view: "TripCollectionView",
        year: int,
        working_days: Optional[int] = None,
    ) -> MileageResult:
        """Allowance from the business distance recorded in the logbook for a year."""
        return self.from_total_distance(view.business_distance_for_year(year), working_days)
