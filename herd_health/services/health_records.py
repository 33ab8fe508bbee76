"""
Health record manager: the engine's public surface.

Every operation follows the same shape:
1. Validate (typed errors, nothing persisted yet)
2. Persist the primary entity
3. Run side effects (notifications, inventory, alerts, biosecurity)

Side effects are isolated from each other and from the primary write: a
failing collaborator is logged and the operation still returns its entity.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar, cast

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from herd_health.config import EngineConfig
from herd_health.domain.errors import (
    DependencyFailure,
    DuplicateVaccination,
    HealthRecordError,
    InvalidDateRange,
    MedicationUnavailable,
    NotFoundError,
    ValidationError,
)
from herd_health.domain.models import (
    DiseaseInput,
    DiseaseRecord,
    DiseaseSeverity,
    HealthAlert,
    HealthMetrics,
    HealthStatistics,
    HistoryFilters,
    Location,
    MedicalHistory,
    MedicalRecord,
    MedicalRecordInput,
    Period,
    TreatmentMedication,
    TreatmentPlan,
    TreatmentPlanInput,
    Vaccination,
    VaccinationInput,
    VaccinationScheduleItem,
    VaccinationStatus,
    VaccineCategory,
)
from herd_health.observability import get_logger
from herd_health.services.alerts import PRIORITY_RANK, AlertEngine
from herd_health.services.duplicates import DuplicateDetector
from herd_health.services.health_metrics import HealthMetricsCalculator
from herd_health.services.ids import EntityKind, IdGenerator, TimeRandomIdGenerator
from herd_health.services.ports import (
    BiosecurityWorkflow,
    DateRange,
    GeolocationValidator,
    HealthRepositories,
    HerdDirectory,
    InventoryManager,
    NotificationDispatcher,
    RecordQuery,
)
from herd_health.services.scheduling import ScheduleCalculator
from herd_health.services.statistics import HealthStatisticsCalculator
from herd_health.services.validation import ValidationGate

InputT = TypeVar("InputT", bound=BaseModel)


def _coerce(model: type[InputT], data: InputT | dict[str, Any], operation: str) -> InputT:
    """Parse caller input, reporting the first bad field as an engine ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        bovine_id = data.get("bovine_id") if isinstance(data, dict) else None
        raise ValidationError(
            first["msg"],
            operation=operation,
            bovine_id=bovine_id if isinstance(bovine_id, str) else None,
            field=field,
        ) from e


class HealthRecordManager:
    """
    Facade over the health record engine.

    All collaborators are injected; there is no shared module-level instance.
    """

    def __init__(
        self,
        repositories: HealthRepositories,
        notifier: NotificationDispatcher,
        geolocation: GeolocationValidator,
        inventory: InventoryManager,
        herd: HerdDirectory,
        biosecurity: BiosecurityWorkflow,
        config: EngineConfig | None = None,
        id_generator: IdGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.repositories = repositories
        self.notifier = notifier
        self.geolocation = geolocation
        self.inventory = inventory
        self.herd = herd
        self.biosecurity = biosecurity
        self.id_generator = id_generator or TimeRandomIdGenerator()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger or get_logger("health_record_manager")

        timeout = self.config.collaborator_timeout_seconds
        self.validation = ValidationGate(geolocation, inventory, timeout_seconds=timeout)
        self.schedule = ScheduleCalculator(self.config)
        self.duplicates = DuplicateDetector(
            repositories.vaccinations, window_days=self.config.duplicate_window_days
        )
        self.metrics = HealthMetricsCalculator(repositories)
        self.statistics = HealthStatisticsCalculator(repositories, herd)
        self.alert_engine = AlertEngine(
            alerts=repositories.alerts,
            vaccinations=repositories.vaccinations,
            treatments=repositories.treatments,
            notifier=notifier,
            id_generator=self.id_generator,
            timeout_seconds=timeout,
        )

    # Medical records

    async def create_medical_record(
        self, data: MedicalRecordInput | dict[str, Any], user_id: str
    ) -> MedicalRecord:
        operation = "create_medical_record"
        data = _coerce(MedicalRecordInput, data, operation)
        log = self.logger.bind(operation=operation, bovine_id=data.bovine_id, user_id=user_id)

        try:
            (
                await self.validation.check_location(
                    data.location, required=False, operation=operation, bovine_id=data.bovine_id
                )
            ).unwrap()
            self.validation.check_dosages(
                data.medications, operation=operation, bovine_id=data.bovine_id
            ).unwrap()
        except HealthRecordError as e:
            log.warning("medical_record_rejected", code=e.code, error=e.message)
            raise

        location = await self._label_location(data.location)
        now = self.clock()
        record_id = self.id_generator.generate(EntityKind.RECORD)
        medications = [
            line.model_copy(
                update={
                    "id": line.id or self.id_generator.generate(EntityKind.MEDICATION),
                    "health_record_id": record_id,
                    "application_date": line.application_date or data.consultation_date,
                }
            )
            for line in data.medications
        ]

        record = MedicalRecord(
            **data.model_dump(exclude={"location", "medications"}),
            id=record_id,
            location=location,
            medications=medications,
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        stored = await self.repositories.medical_records.create(record)

        # Each line is stored on its own; one bad line does not undo the record
        for line in medications:
            try:
                await self.repositories.medications.create(line)
            except Exception as e:
                log.error(
                    "medication_line_failed",
                    record_id=stored.id,
                    medication_id=line.medication_id,
                    error=str(e) or type(e).__name__,
                )

        await self._side_effect(
            "consultation_alert",
            self.alert_engine.raise_alert(self.alert_engine.consultation_alert(stored, now)),
            record_id=stored.id,
        )

        log.info("medical_record_created", record_id=stored.id, medications=len(medications))
        return stored

    # Vaccinations

    async def record_vaccination(
        self, data: VaccinationInput | dict[str, Any], user_id: str
    ) -> Vaccination:
        operation = "record_vaccination"
        data = _coerce(VaccinationInput, data, operation)
        log = self.logger.bind(
            operation=operation,
            bovine_id=data.bovine_id,
            vaccine_id=data.vaccine_id,
            user_id=user_id,
        )

        try:
            (
                await self.validation.check_location(
                    data.location, required=True, operation=operation, bovine_id=data.bovine_id
                )
            ).unwrap()
        except HealthRecordError as e:
            log.warning("vaccination_rejected", code=e.code, error=e.message)
            raise

        # check_location with required=True has rejected a missing location
        location = cast(Location, await self._label_location(data.location))
        profile = self.schedule.profile(data.vaccine_id)

        async with self.duplicates.guard(data.bovine_id, data.vaccine_id):
            if await self.duplicates.is_duplicate(
                data.bovine_id, data.vaccine_id, data.administration_date
            ):
                log.warning("vaccination_rejected", code=DuplicateVaccination.code)
                raise DuplicateVaccination(
                    data.bovine_id, data.vaccine_id, data.vaccine_name, operation=operation
                )

            # A backdated dose is history; the later dose already carries the schedule
            superseded = await self.repositories.vaccinations.count(
                RecordQuery.where(
                    bovine_id=data.bovine_id,
                    vaccine_id=data.vaccine_id,
                    ranges={"administration_date": DateRange(start=data.administration_date)},
                )
            ) > 0

            next_due_date = self.schedule.next_vaccination_due_date(
                data.vaccine_id, data.administration_date
            )
            vaccination = Vaccination(
                **data.model_dump(exclude={"location", "category", "cost", "quantity"}),
                id=self.id_generator.generate(EntityKind.VACCINATION),
                location=location,
                next_due_date=next_due_date,
                status=VaccinationStatus.COMPLETED if superseded else VaccinationStatus.SCHEDULED,
                category=data.category or (profile.category if profile else VaccineCategory.CORE),
                cost=data.cost if data.cost is not None else (profile.cost if profile else 0.0),
                quantity=data.quantity or self.config.vaccine_doses_per_administration,
                created_by=user_id,
                created_at=self.clock(),
            )
            stored = await self.repositories.vaccinations.create(vaccination)

        scheduled = stored.status == VaccinationStatus.SCHEDULED
        if scheduled and stored.next_due_date is not None:
            await self._side_effect(
                "schedule_follow_up", self._schedule_follow_up(stored), vaccination_id=stored.id
            )

        await self._side_effect(
            "vaccine_inventory",
            self.inventory.consume(stored.vaccine_id, stored.quantity),
            vaccination_id=stored.id,
        )
        if scheduled:
            await self._side_effect(
                "vaccination_confirmation",
                self.notifier.send_vaccination_reminder(
                    stored.bovine_id,
                    stored.vaccine_name,
                    stored.next_due_date or stored.administration_date,
                ),
                vaccination_id=stored.id,
            )

        log.info(
            "vaccination_recorded",
            vaccination_id=stored.id,
            status=stored.status.value,
            next_due_date=stored.next_due_date.isoformat() if stored.next_due_date else None,
        )
        return stored

    async def _schedule_follow_up(self, vaccination: Vaccination) -> None:
        """Earlier scheduled doses of the same vaccine are fulfilled by this one."""
        earlier = await self.repositories.vaccinations.find_all(
            RecordQuery.where(
                bovine_id=vaccination.bovine_id,
                vaccine_id=vaccination.vaccine_id,
                status=VaccinationStatus.SCHEDULED,
                ranges={"administration_date": DateRange(end=vaccination.administration_date)},
            )
        )
        superseded = [previous for previous in earlier if previous.id != vaccination.id]
        for previous in superseded:
            await self.repositories.vaccinations.update(
                previous.model_copy(update={"status": VaccinationStatus.COMPLETED})
            )
        self.logger.info(
            "vaccination_scheduled",
            vaccination_id=vaccination.id,
            due_date=vaccination.next_due_date.isoformat() if vaccination.next_due_date else None,
            superseded=len(superseded),
        )

    # Treatment plans

    async def create_treatment_plan(
        self, data: TreatmentPlanInput | dict[str, Any], user_id: str
    ) -> TreatmentPlan:
        operation = "create_treatment_plan"
        data = _coerce(TreatmentPlanInput, data, operation)
        log = self.logger.bind(operation=operation, bovine_id=data.bovine_id, user_id=user_id)

        try:
            self.validation.check_dosages(
                data.medications, operation=operation, bovine_id=data.bovine_id
            ).unwrap()
            (
                await self.validation.check_availability(
                    data.medications, operation=operation, bovine_id=data.bovine_id
                )
            ).unwrap()
        except HealthRecordError as e:
            log.warning("treatment_plan_rejected", code=e.code, error=e.message)
            raise

        total_cost = sum(line.cost for line in data.medications)

        # Reserve every line before the plan exists; a failure releases what was taken
        reserved = await self._reserve_all(data.medications, operation, data.bovine_id)

        now = self.clock()
        plan = TreatmentPlan(
            **data.model_dump(),
            id=self.id_generator.generate(EntityKind.TREATMENT),
            total_cost=total_cost,
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        try:
            stored = await self.repositories.treatments.create(plan)
        except Exception:
            await self._release_all(reserved)
            raise

        due_date = self.schedule.treatment_followup_due(stored.start_date, stored.next_checkup)
        await self._side_effect(
            "treatment_followup_alert",
            self.alert_engine.raise_alert(
                self.alert_engine.treatment_followup_alert(stored, due_date, now)
            ),
            treatment_id=stored.id,
        )

        log.info("treatment_plan_created", treatment_id=stored.id, total_cost=stored.total_cost)
        return stored

    async def _reserve_all(
        self, lines: list[TreatmentMedication], operation: str, bovine_id: str
    ) -> list[TreatmentMedication]:
        reserved: list[TreatmentMedication] = []
        for line in lines:
            try:
                await asyncio.wait_for(
                    self.inventory.reserve(line.medication_id, line.dosage),
                    timeout=self.config.collaborator_timeout_seconds,
                )
            except Exception as e:
                self.logger.warning(
                    "medication_reservation_failed",
                    medication_id=line.medication_id,
                    rolled_back=len(reserved),
                    error=str(e) or type(e).__name__,
                )
                await self._release_all(reserved)
                raise MedicationUnavailable(
                    line.medication_id, line.dosage, operation=operation, bovine_id=bovine_id
                ) from e
            reserved.append(line)
        return reserved

    async def _release_all(self, lines: list[TreatmentMedication]) -> None:
        for line in reversed(lines):
            await self._side_effect(
                "medication_release",
                self.inventory.release(line.medication_id, line.dosage),
                medication_id=line.medication_id,
            )

    # Diseases

    async def record_disease(
        self, data: DiseaseInput | dict[str, Any], user_id: str
    ) -> DiseaseRecord:
        data = _coerce(DiseaseInput, data, "record_disease")
        log = self.logger.bind(operation="record_disease", bovine_id=data.bovine_id, user_id=user_id)

        now = self.clock()
        disease = DiseaseRecord(
            **data.model_dump(),
            id=self.id_generator.generate(EntityKind.DISEASE),
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        stored = await self.repositories.diseases.create(disease)

        if stored.quarantine_required:
            await self._side_effect(
                "quarantine",
                self.biosecurity.initiate_quarantine(stored.bovine_id, stored.quarantine_end_date),
                disease_id=stored.id,
            )
        if stored.is_contagious:
            await self._side_effect(
                "contagious_disease",
                self.biosecurity.handle_contagious_disease(stored),
                disease_id=stored.id,
            )
        if stored.is_reportable:
            await self._side_effect(
                "notifiable_disease_report",
                self.biosecurity.report_notifiable_disease(stored),
                disease_id=stored.id,
            )
        if stored.severity == DiseaseSeverity.CRITICAL:
            await self._side_effect(
                "critical_disease_alert",
                self.alert_engine.raise_alert(
                    self.alert_engine.critical_disease_alert(stored, now)
                ),
                disease_id=stored.id,
            )

        log.info(
            "disease_recorded",
            disease_id=stored.id,
            disease_name=stored.disease_name,
            severity=stored.severity.value,
        )
        return stored

    # Queries

    async def get_medical_history(
        self, bovine_id: str, filters: HistoryFilters | dict[str, Any] | None = None
    ) -> MedicalHistory:
        """Records for one animal; unknown animals yield an empty history."""
        filters = _coerce(HistoryFilters, filters or {}, "get_medical_history")
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise InvalidDateRange(
                "start_date is after end_date",
                operation="get_medical_history",
                bovine_id=bovine_id,
                field="start_date",
            )

        window = DateRange(start=filters.start_date, end=filters.end_date)
        dated = window.start is not None or window.end is not None

        def query(date_field: str) -> RecordQuery:
            return RecordQuery.where(
                bovine_id=bovine_id,
                ranges={date_field: window} if dated else None,
                order_by=date_field,
                descending=True,
            )

        async def nothing() -> list:
            return []

        repos = self.repositories
        records, vaccinations, treatments, diseases = await asyncio.gather(
            repos.medical_records.find_all(query("consultation_date")),
            repos.vaccinations.find_all(query("administration_date"))
            if filters.include_vaccinations
            else nothing(),
            repos.treatments.find_all(query("start_date"))
            if filters.include_treatments
            else nothing(),
            repos.diseases.find_all(query("date_detected"))
            if filters.include_diseases
            else nothing(),
        )

        return MedicalHistory(
            bovine_id=bovine_id,
            medical_records=records,
            vaccinations=vaccinations,
            treatments=treatments,
            diseases=diseases,
        )

    async def get_vaccination_schedule(
        self, ranch_id: str | None = None, days: int = 30
    ) -> list[VaccinationScheduleItem]:
        """Scheduled doses due within [now, now + days], most pressing first."""
        if days < 0:
            raise InvalidDateRange(
                "days must not be negative", operation="get_vaccination_schedule", field="days"
            )

        now = self.clock()
        members = await self.herd.list_members(ranch_id)
        living = {m.bovine_id for m in members if m.is_alive(now)}

        scheduled = await self.repositories.vaccinations.find_all(
            RecordQuery.where(
                status=VaccinationStatus.SCHEDULED,
                ranges={"next_due_date": DateRange(start=now, end=now + timedelta(days=days))},
                members={"bovine_id": living},
            )
        )

        items = []
        for vaccination in scheduled:
            if vaccination.next_due_date is None:
                continue
            items.append(
                VaccinationScheduleItem(
                    bovine_id=vaccination.bovine_id,
                    vaccination_id=vaccination.id,
                    vaccine_id=vaccination.vaccine_id,
                    vaccine_name=vaccination.vaccine_name,
                    category=vaccination.category,
                    scheduled_date=vaccination.next_due_date,
                    priority=self.schedule.schedule_priority(
                        vaccination.category, vaccination.next_due_date, now
                    ),
                    is_recurring=self.schedule.profile(vaccination.vaccine_id) is not None,
                    interval_days=self.schedule.interval_days(vaccination.vaccine_id),
                    last_administered=vaccination.administration_date,
                    status=vaccination.status,
                    cost=vaccination.cost,
                )
            )

        items.sort(key=lambda item: (-PRIORITY_RANK[item.priority.value], item.scheduled_date))
        return items

    async def calculate_health_metrics(
        self, bovine_id: str, period: Period | dict[str, Any]
    ) -> HealthMetrics:
        period = _coerce(Period, period, "calculate_health_metrics")
        if period.start > period.end:
            raise InvalidDateRange(
                "period start is after period end",
                operation="calculate_health_metrics",
                bovine_id=bovine_id,
                field="period",
            )
        return await self.metrics.compute_metrics(bovine_id, period)

    async def process_health_alerts(self, ranch_id: str | None = None) -> list[HealthAlert]:
        bovine_ids = None
        if ranch_id is not None:
            bovine_ids = [m.bovine_id for m in await self.herd.list_members(ranch_id)]
        return await self.alert_engine.scan(self.clock(), bovine_ids)

    async def get_health_statistics(
        self, ranch_id: str | None = None, period_days: int = 30
    ) -> HealthStatistics:
        if period_days < 0:
            raise InvalidDateRange(
                "period_days must not be negative",
                operation="get_health_statistics",
                field="period_days",
            )
        return await self.statistics.compute(ranch_id, period_days, self.clock())

    async def resolve_alert(self, alert_id: str, user_id: str) -> HealthAlert:
        return await self.alert_engine.resolve(alert_id, user_id)

    # Single-entity lookups

    async def get_medical_record(self, record_id: str) -> MedicalRecord:
        record = await self.repositories.medical_records.get(record_id)
        if record is None:
            raise NotFoundError("MedicalRecord", record_id, operation="get_medical_record")
        return record

    async def get_vaccination(self, vaccination_id: str) -> Vaccination:
        vaccination = await self.repositories.vaccinations.get(vaccination_id)
        if vaccination is None:
            raise NotFoundError("Vaccination", vaccination_id, operation="get_vaccination")
        return vaccination

    async def get_treatment_plan(self, treatment_id: str) -> TreatmentPlan:
        plan = await self.repositories.treatments.get(treatment_id)
        if plan is None:
            raise NotFoundError("TreatmentPlan", treatment_id, operation="get_treatment_plan")
        return plan

    async def get_disease(self, disease_id: str) -> DiseaseRecord:
        disease = await self.repositories.diseases.get(disease_id)
        if disease is None:
            raise NotFoundError("DiseaseRecord", disease_id, operation="get_disease")
        return disease

    # Helpers

    async def _label_location(self, location: Location | None) -> Location | None:
        if location is None or location.address:
            return location
        try:
            label = await asyncio.wait_for(
                self.geolocation.describe(location),
                timeout=self.config.collaborator_timeout_seconds,
            )
        except Exception as e:
            self.logger.warning("location_label_failed", error=str(e) or type(e).__name__)
            return location
        return location.model_copy(update={"address": label})

    async def _side_effect(self, name: str, effect: Awaitable[Any], **context: Any) -> bool:
        """Run one side effect with a timeout; log and swallow any failure."""
        try:
            await asyncio.wait_for(effect, timeout=self.config.collaborator_timeout_seconds)
        except Exception as e:
            failure = DependencyFailure(name, str(e) or type(e).__name__)
            self.logger.error(
                "side_effect_failed",
                side_effect=name,
                code=failure.code,
                error=failure.message,
                **context,
            )
            return False
        return True
