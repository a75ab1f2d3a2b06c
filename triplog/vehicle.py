"""Vehicle dataclass for logbook vehicles."""

from dataclasses import dataclass
from typing import Optional


def normalize_plate(plate: str) -> str:
    """Trim and uppercase a license plate."""
    return plate.strip().upper()


@dataclass
class Vehicle:
    """A vehicle that trips are recorded against."""

    make: str
    model: str
    license_plate: str
    fuel_type: str
    is_primary: bool = False
    audit_protected: bool = False
    notes: Optional[str] = None
    id: int = 0

    @property
    def name(self) -> str:
        """Human-readable vehicle name."""
        return f"{self.make} {self.model}"
