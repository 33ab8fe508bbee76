"""
Typed errors raised by the health record engine.

Every error carries a machine-readable ``code`` plus the operation, animal and
offending field, so callers can react without re-deriving context.
"""

from typing import Any


class HealthRecordError(Exception):
    """Base class for all engine errors."""

    code = "health_record_error"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        bovine_id: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.bovine_id = bovine_id
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "operation": self.operation,
            "bovine_id": self.bovine_id,
            "field": self.field,
        }


class ValidationError(HealthRecordError):
    """Caller-correctable input problem, raised before any mutation."""

    code = "validation_error"


class InvalidLocation(ValidationError):
    code = "invalid_location"


class InvalidMedicationDosage(ValidationError):
    code = "invalid_medication_dosage"


class InvalidDateRange(ValidationError):
    code = "invalid_date_range"


class ConflictError(HealthRecordError):
    code = "conflict"


class DuplicateVaccination(ConflictError):
    code = "duplicate_vaccination"

    def __init__(
        self, bovine_id: str, vaccine_id: str, vaccine_name: str, *, operation: str | None = None
    ) -> None:
        super().__init__(
            f"A recent {vaccine_name} ({vaccine_id}) vaccination already exists "
            f"for bovine {bovine_id}",
            operation=operation,
            bovine_id=bovine_id,
            field="administration_date",
        )
        self.vaccine_id = vaccine_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "vaccine_id": self.vaccine_id}


class ResourceUnavailableError(HealthRecordError):
    code = "resource_unavailable"


class MedicationUnavailable(ResourceUnavailableError):
    code = "medication_unavailable"

    def __init__(
        self,
        medication_id: str,
        quantity: float,
        *,
        operation: str | None = None,
        bovine_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Medication {medication_id} is not available in quantity {quantity:g}",
            operation=operation,
            bovine_id=bovine_id,
            field="medications",
        )
        self.medication_id = medication_id
        self.quantity = quantity


class NotFoundError(HealthRecordError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str, *, operation: str | None = None) -> None:
        super().__init__(f"{entity} {entity_id} not found", operation=operation, field="id")
        self.entity = entity
        self.entity_id = entity_id


class DependencyFailure(HealthRecordError):
    """A collaborator call failed. Logged at the side-effect boundary, never propagated."""

    code = "dependency_failure"

    def __init__(self, dependency: str, message: str, **context: Any) -> None:
        super().__init__(f"{dependency}: {message}", **context)
        self.dependency = dependency
