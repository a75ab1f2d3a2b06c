"""TripPurpose dataclass for trip categories."""

from dataclasses import dataclass

DEFAULT_COLOR = "#6200EE"


@dataclass
class TripPurpose:
    """A named trip category, e.g. business or private."""

    name: str
    is_business_relevant: bool
    color: str = DEFAULT_COLOR
    is_default: bool = False
    id: int = 0
