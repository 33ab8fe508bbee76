"""
Domain models for livestock health records.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; every entity is frozen, so state changes
produce a new copy through the explicit transition helpers below.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# Every stored timestamp is timezone-aware UTC
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class ConsultationType(str, Enum):
    """Kinds of veterinary consultation recorded against an animal."""

    ROUTINE_CHECKUP = "routine_checkup"
    EMERGENCY_VISIT = "emergency_visit"
    FOLLOW_UP = "follow_up"
    SURGERY = "surgery"
    LABORATORY_TEST = "laboratory_test"
    PHYSICAL_EXAM = "physical_exam"
    REPRODUCTIVE_EXAM = "reproductive_exam"
    NECROPSY = "necropsy"
    QUARANTINE_ASSESSMENT = "quarantine_assessment"
    PRE_TRANSPORT_EXAM = "pre_transport_exam"
    NUTRITION_ASSESSMENT = "nutrition_assessment"
    OTHER = "other"


class AdministrationRoute(str, Enum):
    ORAL = "oral"
    INTRAMUSCULAR = "intramuscular"
    SUBCUTANEOUS = "subcutaneous"
    INTRAVENOUS = "intravenous"
    TOPICAL = "topical"
    INTRAUTERINE = "intrauterine"
    INTRAMAMMARY = "intramammary"
    INHALATION = "inhalation"


class VaccineCategory(str, Enum):
    """Vaccine categories; drives schedule priority."""

    CORE = "core"
    NON_CORE = "non_core"
    EMERGENCY = "emergency"
    BOOSTER = "booster"


class VaccinationStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class TreatmentStatus(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class DiseaseCategory(str, Enum):
    INFECTIOUS = "infectious"
    PARASITIC = "parasitic"
    METABOLIC = "metabolic"
    REPRODUCTIVE = "reproductive"
    RESPIRATORY = "respiratory"
    DIGESTIVE = "digestive"
    MUSCULOSKELETAL = "musculoskeletal"
    DERMATOLOGICAL = "dermatological"
    NEUROLOGICAL = "neurological"
    CARDIOVASCULAR = "cardiovascular"


class DiseaseSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"


class DiseaseStatus(str, Enum):
    SUSPECTED = "suspected"
    CONFIRMED = "confirmed"
    TREATED = "treated"
    RECOVERED = "recovered"
    CHRONIC = "chronic"


# Statuses that count a disease case as still affecting the animal
ACTIVE_DISEASE_STATUSES = frozenset(
    {DiseaseStatus.SUSPECTED, DiseaseStatus.CONFIRMED, DiseaseStatus.TREATED}
)


class AlertType(str, Enum):
    VACCINATION_DUE = "vaccination_due"
    TREATMENT_OVERDUE = "treatment_overdue"
    TREATMENT_FOLLOWUP = "treatment_followup"
    HEALTH_DETERIORATION = "health_deterioration"
    QUARANTINE_VIOLATION = "quarantine_violation"
    MEDICATION_EXPIRY = "medication_expiry"
    CONSULTATION_RECORDED = "consultation_recorded"


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SchedulePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Location(BaseModel):
    """Where an examination or administration took place.

    Ranges are not enforced here; the validation gate rejects
    out-of-range coordinates with a typed error before anything is stored.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    address: str | None = None


class Period(BaseModel):
    """Closed date interval [start, end]."""

    model_config = ConfigDict(frozen=True)

    start: UtcDatetime
    end: UtcDatetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class Medication(BaseModel):
    """Medication line applied during a consultation."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    health_record_id: str | None = Field(
        default=None, description="Back-reference to the owning medical record"
    )
    medication_id: str
    medication_name: str = ""
    dosage: float
    dosage_unit: str = "ml"
    cost: float = Field(default=0.0, ge=0.0)
    administration_route: AdministrationRoute | None = None
    application_date: UtcDatetime | None = None
    withdrawal_period_days: int | None = Field(default=None, ge=0)


class MedicalRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    bovine_id: str
    consultation_type: ConsultationType
    consultation_date: UtcDatetime
    veterinarian_id: str | None = None
    diagnosis: str | None = None
    treatment: str | None = None
    next_consultation: UtcDatetime | None = None
    cost: float = Field(default=0.0, ge=0.0)
    observations: str | None = None
    location: Location | None = None
    medications: list[Medication] = Field(default_factory=list)
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_cost(self) -> float:
        return self.cost + sum(line.cost for line in self.medications)


class Vaccination(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    bovine_id: str
    vaccine_id: str
    vaccine_name: str
    administration_date: UtcDatetime
    location: Location
    next_due_date: UtcDatetime | None = None
    status: VaccinationStatus = VaccinationStatus.SCHEDULED
    category: VaccineCategory = VaccineCategory.CORE
    manufacturer: str | None = None
    batch_number: str | None = None
    dose: str | None = None
    administration_route: AdministrationRoute | None = None
    veterinarian_id: str | None = None
    cost: float = Field(default=0.0, ge=0.0)
    quantity: int = Field(default=1, gt=0)
    created_by: str
    created_at: UtcDatetime

    @model_validator(mode="after")
    def due_date_after_administration(self) -> "Vaccination":
        if self.next_due_date is not None and self.next_due_date <= self.administration_date:
            raise ValueError("next_due_date must be strictly after administration_date")
        return self


class TreatmentMedication(BaseModel):
    model_config = ConfigDict(frozen=True)

    medication_id: str
    medication_name: str = ""
    dosage: float
    dosage_unit: str = "ml"
    frequency: str | None = None
    route: AdministrationRoute | None = None
    cost: float = Field(default=0.0, ge=0.0)


class TreatmentPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    bovine_id: str
    condition: str
    diagnosis: str | None = None
    veterinarian_id: str | None = None
    start_date: UtcDatetime
    end_date: UtcDatetime | None = None
    status: TreatmentStatus = TreatmentStatus.PLANNED
    medications: list[TreatmentMedication] = Field(min_length=1)
    instructions: list[str] = Field(default_factory=list)
    progress: int = Field(default=0, ge=0, le=100)
    next_checkup: UtcDatetime | None = None
    total_cost: float = Field(ge=0.0)
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class DiseaseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    bovine_id: str
    disease_name: str
    category: DiseaseCategory | None = None
    severity: DiseaseSeverity
    status: DiseaseStatus = DiseaseStatus.SUSPECTED
    date_detected: UtcDatetime
    date_resolved: UtcDatetime | None = None
    symptoms: list[str] = Field(default_factory=list)
    diagnosis: str | None = None
    is_contagious: bool = False
    is_reportable: bool = False
    quarantine_required: bool = False
    quarantine_end_date: UtcDatetime | None = None
    cost: float = Field(default=0.0, ge=0.0)
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_DISEASE_STATUSES


class HealthAlert(BaseModel):
    """Actionable alert derived from a medical record.

    ``notification_sent`` and ``is_resolved`` only move from False to True;
    use :meth:`mark_notified` and :meth:`resolve` to obtain the updated copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    bovine_id: str
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    details: str
    trigger_date: UtcDatetime
    due_date: UtcDatetime | None = None
    is_resolved: bool = False
    resolved_at: UtcDatetime | None = None
    resolved_by: str | None = None
    notification_sent: bool = False
    related_record_id: str
    actions: list[str] = Field(default_factory=list)

    def mark_notified(self) -> "HealthAlert":
        if self.notification_sent:
            return self
        return self.model_copy(update={"notification_sent": True})

    def resolve(self, user_id: str, at: datetime | None = None) -> "HealthAlert":
        if self.is_resolved:
            return self
        return self.model_copy(
            update={"is_resolved": True, "resolved_by": user_id, "resolved_at": at or utc_now()}
        )


class HealthMetrics(BaseModel):
    """Per-animal health indicators over a period. Derived, never persisted."""

    model_config = ConfigDict(frozen=True)

    bovine_id: str
    period: Period
    consultations: int = Field(ge=0)
    vaccinations: int = Field(ge=0)
    treatments: int = Field(ge=0)
    active_diseases: int = Field(ge=0)
    total_cost: float = Field(ge=0.0)
    health_score: int = Field(ge=0, le=100)
    risk_factors: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class VaccinationScheduleItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    bovine_id: str
    vaccination_id: str
    vaccine_id: str
    vaccine_name: str
    category: VaccineCategory
    scheduled_date: UtcDatetime
    priority: SchedulePriority
    is_recurring: bool
    interval_days: int | None = None
    last_administered: UtcDatetime
    status: VaccinationStatus
    cost: float = 0.0


class DiseaseCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    disease: str
    count: int


class HealthStatistics(BaseModel):
    """Ranch-wide rollup over a trailing window of days."""

    model_config = ConfigDict(frozen=True)

    ranch_id: str | None
    period: Period
    herd_size: int
    total_consultations: int
    total_vaccinations: int
    total_treatments: int
    active_treatments: int
    healthy_animals: int
    sick_animals: int
    critical_animals: int
    quarantined_animals: int
    total_health_costs: float
    average_cost_per_animal: float
    common_diseases: list[DiseaseCount]
    vaccination_coverage: float = Field(ge=0.0, le=100.0, description="Percent of living animals")
    treatment_success_rate: float = Field(ge=0.0, le=100.0)
    mortality_rate: float = Field(ge=0.0, le=100.0)


class MedicalHistory(BaseModel):
    model_config = ConfigDict(frozen=True)

    bovine_id: str
    medical_records: list[MedicalRecord] = Field(default_factory=list)
    vaccinations: list[Vaccination] = Field(default_factory=list)
    treatments: list[TreatmentPlan] = Field(default_factory=list)
    diseases: list[DiseaseRecord] = Field(default_factory=list)


class HerdMember(BaseModel):
    """Animal as known to the herd directory."""

    model_config = ConfigDict(frozen=True)

    bovine_id: str
    ranch_id: str
    deceased_at: UtcDatetime | None = None

    def is_alive(self, at: datetime) -> bool:
        return self.deceased_at is None or self.deceased_at > at


# Inputs accepted by the record manager. Ids and timestamps are assigned by the engine.


class MedicalRecordInput(BaseModel):
    bovine_id: str = Field(min_length=1)
    consultation_type: ConsultationType
    consultation_date: UtcDatetime
    veterinarian_id: str | None = None
    diagnosis: str | None = None
    treatment: str | None = None
    next_consultation: UtcDatetime | None = None
    cost: float = Field(default=0.0, ge=0.0)
    observations: str | None = None
    location: Location | None = None
    medications: list[Medication] = Field(default_factory=list)


class VaccinationInput(BaseModel):
    bovine_id: str = Field(min_length=1)
    vaccine_id: str = Field(min_length=1)
    vaccine_name: str
    administration_date: UtcDatetime
    location: Location | None = Field(
        default=None, description="Required; a missing location is rejected as invalid"
    )
    category: VaccineCategory | None = None
    manufacturer: str | None = None
    batch_number: str | None = None
    dose: str | None = None
    administration_route: AdministrationRoute | None = None
    veterinarian_id: str | None = None
    cost: float | None = Field(default=None, ge=0.0)
    quantity: int | None = Field(default=None, gt=0)


class TreatmentPlanInput(BaseModel):
    bovine_id: str = Field(min_length=1)
    condition: str
    diagnosis: str | None = None
    veterinarian_id: str | None = None
    start_date: UtcDatetime
    end_date: UtcDatetime | None = None
    status: TreatmentStatus = TreatmentStatus.ACTIVE
    medications: list[TreatmentMedication] = Field(min_length=1)
    instructions: list[str] = Field(default_factory=list)
    next_checkup: UtcDatetime | None = None


class DiseaseInput(BaseModel):
    bovine_id: str = Field(min_length=1)
    disease_name: str = Field(min_length=1)
    category: DiseaseCategory | None = None
    severity: DiseaseSeverity
    status: DiseaseStatus = DiseaseStatus.SUSPECTED
    date_detected: UtcDatetime
    symptoms: list[str] = Field(default_factory=list)
    diagnosis: str | None = None
    is_contagious: bool = False
    is_reportable: bool = False
    quarantine_required: bool = False
    quarantine_end_date: UtcDatetime | None = None
    cost: float = Field(default=0.0, ge=0.0)


class HistoryFilters(BaseModel):
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    include_vaccinations: bool = False
    include_treatments: bool = False
    include_diseases: bool = False
