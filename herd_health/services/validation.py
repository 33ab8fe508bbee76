"""
Pre-mutation checks.

The gate never raises for a broken rule and never changes state: each check
returns a Result naming the failed rule, and the record manager decides to
raise before anything is persisted.
"""

import asyncio
from collections.abc import Sequence

import structlog

from herd_health.domain.errors import (
    InvalidLocation,
    InvalidMedicationDosage,
    MedicationUnavailable,
    ResourceUnavailableError,
    ValidationError,
)
from herd_health.domain.models import Location, Medication, TreatmentMedication
from herd_health.domain.result import Result
from herd_health.observability import get_logger
from herd_health.services.ports import GeolocationValidator, InventoryManager

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


def coordinates_in_range(location: Location) -> bool:
    return (
        LATITUDE_RANGE[0] <= location.latitude <= LATITUDE_RANGE[1]
        and LONGITUDE_RANGE[0] <= location.longitude <= LONGITUDE_RANGE[1]
    )


class ValidationGate:
    def __init__(
        self,
        geolocation: GeolocationValidator,
        inventory: InventoryManager,
        timeout_seconds: float = 10.0,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.geolocation = geolocation
        self.inventory = inventory
        self.timeout_seconds = timeout_seconds
        self.logger = logger or get_logger("validation_gate")

    async def check_location(
        self,
        location: Location | None,
        *,
        required: bool,
        operation: str,
        bovine_id: str,
    ) -> Result[None, ValidationError]:
        """Validate coordinates; a missing location only fails when required."""
        if location is None:
            if not required:
                return Result.ok()
            return Result.err(
                InvalidLocation(
                    "Location is required",
                    operation=operation,
                    bovine_id=bovine_id,
                    field="location",
                )
            )

        if not coordinates_in_range(location):
            return Result.err(
                InvalidLocation(
                    f"Invalid coordinates ({location.latitude}, {location.longitude})",
                    operation=operation,
                    bovine_id=bovine_id,
                    field="location",
                )
            )

        # The validator may know more than the raw bounds (e.g. ranch geofence).
        # If it cannot be reached, the bounds check above stands.
        try:
            accepted = await asyncio.wait_for(
                self.geolocation.is_valid_coordinate(location), timeout=self.timeout_seconds
            )
        except Exception as e:
            self.logger.warning(
                "geolocation_validation_unavailable", operation=operation, error=str(e)
            )
            return Result.ok()

        if not accepted:
            return Result.err(
                InvalidLocation(
                    f"Coordinates ({location.latitude}, {location.longitude}) were rejected",
                    operation=operation,
                    bovine_id=bovine_id,
                    field="location",
                )
            )
        return Result.ok()

    def check_dosages(
        self,
        lines: Sequence[Medication | TreatmentMedication],
        *,
        operation: str,
        bovine_id: str,
    ) -> Result[None, ValidationError]:
        for index, line in enumerate(lines):
            if not line.dosage > 0:
                return Result.err(
                    InvalidMedicationDosage(
                        f"Dosage for medication {line.medication_id} must be positive, "
                        f"got {line.dosage}",
                        operation=operation,
                        bovine_id=bovine_id,
                        field=f"medications[{index}].dosage",
                    )
                )
        return Result.ok()

    async def check_availability(
        self,
        lines: Sequence[TreatmentMedication],
        *,
        operation: str,
        bovine_id: str,
    ) -> Result[None, ResourceUnavailableError]:
        """Every line must be available; the first shortfall fails the whole set."""
        for line in lines:
            try:
                available = await asyncio.wait_for(
                    self.inventory.check_availability(line.medication_id, line.dosage),
                    timeout=self.timeout_seconds,
                )
            except Exception as e:
                self.logger.warning(
                    "availability_check_failed",
                    medication_id=line.medication_id,
                    error=str(e),
                )
                available = False

            if not available:
                return Result.err(
                    MedicationUnavailable(
                        line.medication_id,
                        line.dosage,
                        operation=operation,
                        bovine_id=bovine_id,
                    )
                )
        return Result.ok()
