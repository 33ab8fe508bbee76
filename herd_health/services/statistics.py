"""Ranch-wide health rollup."""

import asyncio
from collections import Counter
from datetime import UTC, datetime, timedelta

import structlog

from herd_health.domain.models import (
    ACTIVE_DISEASE_STATUSES,
    DiseaseCount,
    DiseaseSeverity,
    HealthStatistics,
    Period,
    TreatmentStatus,
    VaccinationStatus,
)
from herd_health.observability import get_logger
from herd_health.services.ports import DateRange, HealthRepositories, HerdDirectory, RecordQuery

COMMON_DISEASE_LIMIT = 5
FINISHED_TREATMENT_STATUSES = frozenset(
    {TreatmentStatus.COMPLETED, TreatmentStatus.SUSPENDED, TreatmentStatus.CANCELLED}
)


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(min(100.0, 100.0 * part / whole), 1)


class HealthStatisticsCalculator:
    def __init__(
        self,
        repositories: HealthRepositories,
        herd: HerdDirectory,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.repositories = repositories
        self.herd = herd
        self.logger = logger or get_logger("health_statistics")

    async def compute(
        self, ranch_id: str | None, period_days: int, now: datetime | None = None
    ) -> HealthStatistics:
        now = now or datetime.now(UTC)
        period = Period(start=now - timedelta(days=period_days), end=now)
        window = DateRange(start=period.start, end=period.end)

        members = await self.herd.list_members(ranch_id)
        herd_ids = frozenset(member.bovine_id for member in members)
        living_ids = frozenset(member.bovine_id for member in members if member.is_alive(now))
        deceased_in_window = sum(1 for member in members if window.contains(member.deceased_at))

        in_herd = {"bovine_id": herd_ids}
        repos = self.repositories
        records, vaccinations, treatments, diseases, all_vaccinations = await asyncio.gather(
            repos.medical_records.find_all(
                RecordQuery.where(ranges={"consultation_date": window}, members=in_herd)
            ),
            repos.vaccinations.find_all(
                RecordQuery.where(ranges={"administration_date": window}, members=in_herd)
            ),
            repos.treatments.find_all(
                RecordQuery.where(ranges={"start_date": window}, members=in_herd)
            ),
            repos.diseases.find_all(RecordQuery.where(members=in_herd)),
            repos.vaccinations.find_all(RecordQuery.where(members=in_herd)),
        )

        active_treatments = await repos.treatments.count(
            RecordQuery.where(status=TreatmentStatus.ACTIVE, members=in_herd)
        )

        active_diseases = [
            d for d in diseases if d.status in ACTIVE_DISEASE_STATUSES and d.bovine_id in living_ids
        ]
        sick = {d.bovine_id for d in active_diseases}
        critical = {d.bovine_id for d in active_diseases if d.severity == DiseaseSeverity.CRITICAL}
        quarantined = {
            d.bovine_id
            for d in active_diseases
            if d.quarantine_required and (d.quarantine_end_date is None or d.quarantine_end_date > now)
        }

        # An animal is covered when it has been vaccinated and nothing is overdue
        vaccinated = {v.bovine_id for v in all_vaccinations}
        overdue = {
            v.bovine_id
            for v in all_vaccinations
            if v.status == VaccinationStatus.SCHEDULED
            and v.next_due_date is not None
            and v.next_due_date <= now
        }
        covered = (vaccinated - overdue) & living_ids

        windowed_diseases = [d for d in diseases if window.contains(d.date_detected)]
        disease_counts = Counter(d.disease_name for d in windowed_diseases)

        finished = [t for t in treatments if t.status in FINISHED_TREATMENT_STATUSES]
        succeeded = sum(1 for t in finished if t.status == TreatmentStatus.COMPLETED)

        total_costs = round(
            sum(r.total_cost for r in records)
            + sum(v.cost for v in vaccinations)
            + sum(t.total_cost for t in treatments)
            + sum(d.cost for d in windowed_diseases),
            2,
        )

        statistics = HealthStatistics(
            ranch_id=ranch_id,
            period=period,
            herd_size=len(herd_ids),
            total_consultations=len(records),
            total_vaccinations=len(vaccinations),
            total_treatments=len(treatments),
            active_treatments=active_treatments,
            healthy_animals=len(living_ids - sick),
            sick_animals=len(sick),
            critical_animals=len(critical),
            quarantined_animals=len(quarantined),
            total_health_costs=total_costs,
            average_cost_per_animal=round(total_costs / len(herd_ids), 2) if herd_ids else 0.0,
            common_diseases=[
                DiseaseCount(disease=name, count=count)
                for name, count in disease_counts.most_common(COMMON_DISEASE_LIMIT)
            ],
            vaccination_coverage=_percent(len(covered), len(living_ids)),
            treatment_success_rate=_percent(succeeded, len(finished)),
            mortality_rate=_percent(deceased_in_window, len(herd_ids)),
        )

        self.logger.info(
            "health_statistics_computed",
            ranch_id=ranch_id,
            herd_size=statistics.herd_size,
            period_days=period_days,
        )
        return statistics
