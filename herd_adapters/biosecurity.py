"""Biosecurity workflow that records and logs actions for later follow-up."""

from datetime import datetime

import structlog

from herd_health.domain.models import DiseaseRecord

logger = structlog.get_logger(__name__)


class LoggingBiosecurityWorkflow:
    def __init__(self) -> None:
        self.quarantines: dict[str, datetime | None] = {}
        self.contagious_cases: list[str] = []
        self.reported_cases: list[str] = []
        self.logger = logger.bind(component="biosecurity")

    async def initiate_quarantine(self, bovine_id: str, end_date: datetime | None) -> None:
        self.quarantines[bovine_id] = end_date
        self.logger.warning(
            "quarantine_initiated",
            bovine_id=bovine_id,
            end_date=end_date.isoformat() if end_date else None,
        )

    async def handle_contagious_disease(self, disease: DiseaseRecord) -> None:
        self.contagious_cases.append(disease.id)
        self.logger.warning(
            "contagious_disease_detected",
            bovine_id=disease.bovine_id,
            disease_name=disease.disease_name,
        )

    async def report_notifiable_disease(self, disease: DiseaseRecord) -> None:
        self.reported_cases.append(disease.id)
        self.logger.warning(
            "notifiable_disease_reported",
            bovine_id=disease.bovine_id,
            disease_name=disease.disease_name,
        )
