"""
Typed errors for logbook commands.

Commands never raise these; they return them inside a Result so callers can
branch on the type without unwinding:

    TripLogError (base)
    +-- ValidationError         field-keyed, caller must re-prompt
    +-- ProtectedDeletionError  deletion refused (audit protection, in use)
    +-- NotFoundError           referenced id does not exist
    +-- DuplicateError          uniqueness violation
    +-- StoreError              persistence failure, original attached
    +-- ConfigError             invalid settings (raised at load time)
"""

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationResult


class TripLogError(Exception):
    """Base class for all logbook errors."""

    code = "TRIPLOG_ERROR"


class ValidationError(TripLogError):
    code = "VALIDATION_ERROR"

    def __init__(self, validation: "ValidationResult"):
        self.validation = validation
        fields = ", ".join(sorted(validation.errors))
        super().__init__(f"Validation failed for: {fields}")

    @property
    def errors(self) -> dict:
        return self.validation.errors


class ProtectedDeletionError(TripLogError):
    code = "PROTECTED_DELETION"

    def __init__(self, entity: str, entity_id: Any, reason: str):
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot delete {entity} {entity_id}: {reason}")


class NotFoundError(TripLogError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found")


class DuplicateError(TripLogError):
    code = "DUPLICATE"

    def __init__(self, entity: str, field: str, value: Any):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} with {field} '{value}' already exists")


class StoreError(TripLogError):
    code = "STORE_ERROR"

    def __init__(self, operation: str, original: Optional[BaseException] = None):
        self.operation = operation
        self.original = original
        self.__cause__ = original
        detail = f": {original}" if original is not None else ""
        super().__init__(f"Store failure during {operation}{detail}")


class ConfigError(TripLogError):
    code = "CONFIG_ERROR"
