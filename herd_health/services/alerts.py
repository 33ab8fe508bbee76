"""
Alert generation and dispatch.

Alerts are keyed by (related record, alert type). A scan only creates an
alert when none exists for its key, so re-running a scan (or resuming one
that was interrupted) never duplicates an open or resolved alert.

Delivery is at-least-once: notification_sent flips to True only after the
dispatcher returns, and unsent alerts are retried by the next scan.
"""

import asyncio
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

import structlog

from herd_health.domain.errors import NotFoundError
from herd_health.domain.models import (
    AlertSeverity,
    AlertType,
    ConsultationType,
    DiseaseRecord,
    HealthAlert,
    MedicalRecord,
    TreatmentPlan,
    TreatmentStatus,
    Vaccination,
    VaccinationStatus,
)
from herd_health.observability import get_logger
from herd_health.services.ids import EntityKind, IdGenerator
from herd_health.services.ports import (
    DateRange,
    NotificationDispatcher,
    RecordQuery,
    Repository,
)

# Shared by alert severities and schedule priorities
PRIORITY_RANK: dict[str, int] = {
    "critical": 5,
    "urgent": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}

_FAR_FUTURE = datetime.max.replace(tzinfo=UTC)


def _due_key(due_date: datetime | None) -> tuple[int, datetime]:
    if due_date is None:
        return (1, _FAR_FUTURE)
    return (0, due_date)


def sort_alerts(alerts: Iterable[HealthAlert]) -> list[HealthAlert]:
    """Most severe first, then earliest due date; alerts without one go last."""
    return sorted(
        alerts,
        key=lambda alert: (-PRIORITY_RANK[alert.severity.value], _due_key(alert.due_date)),
    )


class AlertEngine:
    def __init__(
        self,
        alerts: Repository[HealthAlert],
        vaccinations: Repository[Vaccination],
        treatments: Repository[TreatmentPlan],
        notifier: NotificationDispatcher,
        id_generator: IdGenerator,
        timeout_seconds: float = 10.0,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.alerts = alerts
        self.vaccinations = vaccinations
        self.treatments = treatments
        self.notifier = notifier
        self.id_generator = id_generator
        self.timeout_seconds = timeout_seconds
        self.logger = logger or get_logger("alert_engine")
        self._scan_lock = asyncio.Lock()

    # Alert construction

    def _new_alert(self, **fields) -> HealthAlert:
        return HealthAlert(id=self.id_generator.generate(EntityKind.ALERT), **fields)

    def vaccination_due_alert(self, vaccination: Vaccination, now: datetime) -> HealthAlert:
        due = vaccination.next_due_date
        return self._new_alert(
            bovine_id=vaccination.bovine_id,
            alert_type=AlertType.VACCINATION_DUE,
            severity=AlertSeverity.HIGH,
            message=f"Vaccination overdue: {vaccination.vaccine_name}",
            details=(
                f"{vaccination.vaccine_name} has been due since "
                f"{due.date().isoformat() if due else 'an unknown date'}"
            ),
            trigger_date=now,
            due_date=due,
            related_record_id=vaccination.id,
            actions=["schedule vaccination", "contact veterinarian"],
        )

    def treatment_overdue_alert(self, plan: TreatmentPlan, now: datetime) -> HealthAlert:
        return self._new_alert(
            bovine_id=plan.bovine_id,
            alert_type=AlertType.TREATMENT_OVERDUE,
            severity=AlertSeverity.MEDIUM,
            message="Treatment checkup pending",
            details=f"The treatment for {plan.condition} requires follow-up",
            trigger_date=now,
            due_date=plan.next_checkup,
            related_record_id=plan.id,
            actions=["assess progress", "adjust treatment"],
        )

    def treatment_followup_alert(
        self, plan: TreatmentPlan, due_date: datetime, now: datetime
    ) -> HealthAlert:
        return self._new_alert(
            bovine_id=plan.bovine_id,
            alert_type=AlertType.TREATMENT_FOLLOWUP,
            severity=AlertSeverity.LOW,
            message=f"Follow-up scheduled for {plan.condition}",
            details=f"Treatment plan {plan.id} checkup on {due_date.date().isoformat()}",
            trigger_date=now,
            due_date=due_date,
            related_record_id=plan.id,
            actions=["assess progress"],
        )

    def critical_disease_alert(self, disease: DiseaseRecord, now: datetime) -> HealthAlert:
        return self._new_alert(
            bovine_id=disease.bovine_id,
            alert_type=AlertType.HEALTH_DETERIORATION,
            severity=AlertSeverity.CRITICAL,
            message=f"Critical condition: {disease.disease_name}",
            details="Critical disease detected, immediate attention required",
            trigger_date=now,
            related_record_id=disease.id,
            actions=["contact emergency veterinarian", "start urgent treatment"],
        )

    def consultation_alert(self, record: MedicalRecord, now: datetime) -> HealthAlert:
        emergency = record.consultation_type == ConsultationType.EMERGENCY_VISIT
        return self._new_alert(
            bovine_id=record.bovine_id,
            alert_type=AlertType.CONSULTATION_RECORDED,
            severity=AlertSeverity.HIGH if emergency else AlertSeverity.LOW,
            message="New medical consultation recorded",
            details=f"Consultation: {record.consultation_type.value}",
            trigger_date=now,
            due_date=record.next_consultation,
            related_record_id=record.id,
            actions=["review diagnosis", "schedule follow-up"],
        )

    # Persistence and delivery

    async def raise_alert(self, alert: HealthAlert) -> HealthAlert:
        """Persist an alert and dispatch it immediately."""
        stored = await self.alerts.create(alert)
        self.logger.info(
            "alert_raised",
            alert_id=stored.id,
            alert_type=stored.alert_type.value,
            severity=stored.severity.value,
            bovine_id=stored.bovine_id,
        )
        return await self.dispatch(stored)

    async def dispatch(self, alert: HealthAlert) -> HealthAlert:
        """
        Send one alert. Failures are logged and leave the alert unsent;
        they never propagate.
        """
        if alert.notification_sent:
            return alert

        try:
            await asyncio.wait_for(
                self.notifier.send_health_alert(alert), timeout=self.timeout_seconds
            )
        except Exception as e:
            self.logger.error(
                "alert_dispatch_failed",
                alert_id=alert.id,
                alert_type=alert.alert_type.value,
                error=str(e) or type(e).__name__,
            )
            return alert

        sent = alert.mark_notified()
        try:
            return await self.alerts.update(sent)
        except Exception as e:
            # Delivered but not recorded; the next scan may send it again
            self.logger.error("alert_update_failed", alert_id=alert.id, error=str(e))
            return sent

    async def resolve(self, alert_id: str, user_id: str) -> HealthAlert:
        alert = await self.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("HealthAlert", alert_id, operation="resolve_alert")
        if alert.is_resolved:
            return alert
        resolved = await self.alerts.update(alert.resolve(user_id))
        self.logger.info("alert_resolved", alert_id=alert_id, resolved_by=user_id)
        return resolved

    # Scanning

    async def scan(
        self, now: datetime | None = None, bovine_ids: Iterable[str] | None = None
    ) -> list[HealthAlert]:
        """
        Materialize alerts for overdue vaccinations and treatment checkups.

        Returns every open alert for a currently qualifying condition, sorted
        for display. Restrict to a herd by passing its bovine ids.
        """
        now = now or datetime.now(UTC)
        scope = {"bovine_id": frozenset(bovine_ids)} if bovine_ids is not None else {}

        async with self._scan_lock:
            overdue_vaccinations = await self.vaccinations.find_all(
                RecordQuery.where(
                    status=VaccinationStatus.SCHEDULED,
                    ranges={"next_due_date": DateRange(end=now)},
                    members=scope,
                )
            )
            overdue_treatments = await self.treatments.find_all(
                RecordQuery.where(
                    status=TreatmentStatus.ACTIVE,
                    ranges={"next_checkup": DateRange(end=now)},
                    members=scope,
                )
            )

            candidates: list[HealthAlert] = []
            candidates += await self._materialize(
                AlertType.VACCINATION_DUE,
                overdue_vaccinations,
                lambda vaccination: self.vaccination_due_alert(vaccination, now),
            )
            candidates += await self._materialize(
                AlertType.TREATMENT_OVERDUE,
                overdue_treatments,
                lambda plan: self.treatment_overdue_alert(plan, now),
            )

            dispatched = [await self.dispatch(alert) for alert in candidates]

        self.logger.info(
            "health_alerts_processed",
            open_alerts=len(dispatched),
            overdue_vaccinations=len(overdue_vaccinations),
            overdue_treatments=len(overdue_treatments),
        )
        return sort_alerts(dispatched)

    async def _materialize(self, alert_type: AlertType, records: Sequence, build) -> list[HealthAlert]:
        """Reuse the alert already keyed to each record, or create one."""
        if not records:
            return []

        existing = await self.alerts.find_all(
            RecordQuery.where(
                alert_type=alert_type,
                members={"related_record_id": {record.id for record in records}},
            )
        )
        by_record: dict[str, list[HealthAlert]] = {}
        for alert in existing:
            by_record.setdefault(alert.related_record_id, []).append(alert)

        open_alerts: list[HealthAlert] = []
        for record in records:
            previous = by_record.get(record.id, [])
            if any(alert.is_resolved for alert in previous):
                continue
            if previous:
                open_alerts.append(previous[0])
                continue
            alert = await self.alerts.create(build(record))
            self.logger.info(
                "alert_created",
                alert_id=alert.id,
                alert_type=alert_type.value,
                bovine_id=alert.bovine_id,
                related_record_id=record.id,
            )
            open_alerts.append(alert)
        return open_alerts
