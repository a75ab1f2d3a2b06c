"""TripPhase enum for trip lifecycle states."""

from enum import Enum


class TripPhase(Enum):
    """Lifecycle phases of a trip."""

    STARTED = "started"
    COMPLETED = "completed"
    GHOST = "ghost"  # Abandoned or superseded before completion

    @property
    def is_terminal(self) -> bool:
        return self is not TripPhase.STARTED
