"""
Per-animal health score over a period.

Scoring rules (thresholds and ordering are part of the output contract):
- score starts at 100, minus 20 per active disease, minus 10 when there
  were more than 5 consultations, clamped to [0, 100]
- risk factors and recommendations are appended in a fixed order
"""

import asyncio
from dataclasses import dataclass

import structlog

from herd_health.domain.models import ACTIVE_DISEASE_STATUSES, HealthMetrics, Period
from herd_health.observability import get_logger
from herd_health.services.ports import DateRange, HealthRepositories, RecordQuery

MAX_SCORE = 100
DISEASE_PENALTY = 20
FREQUENT_CONSULTATION_PENALTY = 10
FREQUENT_CONSULTATION_THRESHOLD = 5
MULTIPLE_CONSULTATION_THRESHOLD = 3
URGENT_EVALUATION_SCORE = 70

RISK_ACTIVE_DISEASES = "active diseases present"
RISK_MULTIPLE_CONSULTATIONS = "multiple medical consultations"
RISK_NO_VACCINATIONS = "no vaccinations on record"

RECOMMEND_VACCINATION = "update vaccination schedule"
RECOMMEND_FOLLOW_UP = "continuous medical follow-up"
RECOMMEND_URGENT_EVALUATION = "urgent veterinary evaluation"


@dataclass(frozen=True)
class HealthAssessment:
    health_score: int
    risk_factors: list[str]
    recommendations: list[str]


def health_score(active_diseases: int, consultations: int) -> int:
    score = MAX_SCORE - DISEASE_PENALTY * active_diseases
    if consultations > FREQUENT_CONSULTATION_THRESHOLD:
        score -= FREQUENT_CONSULTATION_PENALTY
    return max(0, min(MAX_SCORE, score))


def assess(consultations: int, vaccinations: int, active_diseases: int) -> HealthAssessment:
    """Pure scoring step, separated from data access for testing."""
    score = health_score(active_diseases, consultations)

    risk_factors: list[str] = []
    if active_diseases > 0:
        risk_factors.append(RISK_ACTIVE_DISEASES)
    if consultations > MULTIPLE_CONSULTATION_THRESHOLD:
        risk_factors.append(RISK_MULTIPLE_CONSULTATIONS)
    if vaccinations == 0:
        risk_factors.append(RISK_NO_VACCINATIONS)

    recommendations: list[str] = []
    if vaccinations == 0:
        recommendations.append(RECOMMEND_VACCINATION)
    if active_diseases > 0:
        recommendations.append(RECOMMEND_FOLLOW_UP)
    if score < URGENT_EVALUATION_SCORE:
        recommendations.append(RECOMMEND_URGENT_EVALUATION)

    return HealthAssessment(score, risk_factors, recommendations)


class HealthMetricsCalculator:
    """Read-only aggregation over the repositories."""

    def __init__(
        self,
        repositories: HealthRepositories,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.repositories = repositories
        self.logger = logger or get_logger("health_metrics")

    async def compute_metrics(self, bovine_id: str, period: Period) -> HealthMetrics:
        window = DateRange(start=period.start, end=period.end)
        repos = self.repositories

        records, vaccinations, treatments, diseases = await asyncio.gather(
            repos.medical_records.find_all(
                RecordQuery.where(bovine_id=bovine_id, ranges={"consultation_date": window})
            ),
            repos.vaccinations.find_all(
                RecordQuery.where(bovine_id=bovine_id, ranges={"administration_date": window})
            ),
            repos.treatments.find_all(
                RecordQuery.where(bovine_id=bovine_id, ranges={"start_date": window})
            ),
            repos.diseases.find_all(
                RecordQuery.where(
                    bovine_id=bovine_id,
                    ranges={"date_detected": window},
                    members={"status": ACTIVE_DISEASE_STATUSES},
                )
            ),
        )

        total_cost = (
            sum(record.total_cost for record in records)
            + sum(vaccination.cost for vaccination in vaccinations)
            + sum(plan.total_cost for plan in treatments)
            + sum(disease.cost for disease in diseases)
        )

        assessment = assess(len(records), len(vaccinations), len(diseases))

        self.logger.info(
            "health_metrics_computed",
            bovine_id=bovine_id,
            health_score=assessment.health_score,
            active_diseases=len(diseases),
        )

        return HealthMetrics(
            bovine_id=bovine_id,
            period=period,
            consultations=len(records),
            vaccinations=len(vaccinations),
            treatments=len(treatments),
            active_diseases=len(diseases),
            total_cost=round(total_cost, 2),
            health_score=assessment.health_score,
            risk_factors=assessment.risk_factors,
            recommendations=assessment.recommendations,
        )
