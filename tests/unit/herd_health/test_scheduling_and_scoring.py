"""
Tests for the pure calculation components: due dates, schedule priority,
duplicate windows and the health score.

Property-based tests cover the arithmetic; example tests pin the exact
ordering of risk factors and recommendations.
"""

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from herd_adapters.memory.repository import InMemoryRepository
from herd_health.config import EngineConfig
from herd_health.domain.models import Location, SchedulePriority, Vaccination, VaccineCategory
from herd_health.services.duplicates import DuplicateDetector
from herd_health.services.health_metrics import (
    RECOMMEND_FOLLOW_UP,
    RECOMMEND_URGENT_EVALUATION,
    RECOMMEND_VACCINATION,
    RISK_ACTIVE_DISEASES,
    RISK_MULTIPLE_CONSULTATIONS,
    RISK_NO_VACCINATIONS,
    assess,
    health_score,
)
from herd_health.services.scheduling import ScheduleCalculator

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)

administration_dates = st.datetimes(
    min_value=datetime(2000, 1, 1),
    max_value=datetime(2090, 1, 1),
    timezones=st.just(UTC),
)


class TestScheduleCalculator:
    @given(administered=administration_dates, interval=st.integers(min_value=1, max_value=3650))
    def test_next_due_is_administration_plus_interval(
        self, administered: datetime, interval: int
    ) -> None:
        calculator = ScheduleCalculator(EngineConfig())
        calculator.set_interval("vacc_test", interval)

        due = calculator.next_vaccination_due_date("vacc_test", administered)

        assert due == administered + timedelta(days=interval)
        assert due > administered

    @given(administered=administration_dates)
    def test_unknown_vaccine_uses_default_interval(self, administered: datetime) -> None:
        calculator = ScheduleCalculator(EngineConfig())

        due = calculator.next_vaccination_due_date("not_in_catalog", administered)

        assert due == administered + timedelta(days=365)

    def test_changed_interval_applies_to_next_call(self) -> None:
        calculator = ScheduleCalculator(EngineConfig())
        assert calculator.interval_days("vacc_001") == 365

        calculator.set_interval("vacc_001", 200)

        assert calculator.next_vaccination_due_date("vacc_001", NOW) == NOW + timedelta(days=200)
        assert calculator.profile("vacc_001").name == "Triple bovine"

    def test_set_interval_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError):
            ScheduleCalculator(EngineConfig()).set_interval("vacc_001", 0)

    def test_set_interval_does_not_leak_into_config(self) -> None:
        config = EngineConfig()
        ScheduleCalculator(config).set_interval("vacc_001", 10)
        assert config.vaccine_catalog["vacc_001"].interval_days == 365

    def test_treatment_followup_prefers_explicit_checkup(self) -> None:
        calculator = ScheduleCalculator(EngineConfig(default_checkup_days=7))
        checkup = NOW + timedelta(days=2)

        assert calculator.treatment_followup_due(NOW, checkup) == checkup
        assert calculator.treatment_followup_due(NOW, None) == NOW + timedelta(days=7)

    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            (VaccineCategory.EMERGENCY, SchedulePriority.URGENT),
            (VaccineCategory.CORE, SchedulePriority.HIGH),
            (VaccineCategory.BOOSTER, SchedulePriority.MEDIUM),
            (VaccineCategory.NON_CORE, SchedulePriority.LOW),
        ],
    )
    def test_priority_follows_category(
        self, category: VaccineCategory, expected: SchedulePriority
    ) -> None:
        calculator = ScheduleCalculator(EngineConfig(urgent_due_days=3))
        assert calculator.schedule_priority(category, NOW + timedelta(days=20), NOW) == expected

    def test_imminent_dose_is_urgent(self) -> None:
        calculator = ScheduleCalculator(EngineConfig(urgent_due_days=3))
        soon = NOW + timedelta(days=3)
        assert calculator.schedule_priority(VaccineCategory.NON_CORE, soon, NOW) == (
            SchedulePriority.URGENT
        )


class TestDuplicateDetector:
    @pytest.fixture
    def vaccinations(self) -> InMemoryRepository[Vaccination]:
        return InMemoryRepository[Vaccination]("vaccinations")

    async def _store(self, repository: InMemoryRepository[Vaccination], administered: datetime) -> None:
        await repository.create(
            Vaccination(
                id="vacc-0001",
                bovine_id="BOV-1",
                vaccine_id="vacc_001",
                vaccine_name="Triple bovine",
                administration_date=administered,
                location=Location(latitude=1.0, longitude=1.0),
                created_by="vet-1",
                created_at=administered,
            )
        )

    async def test_window_is_closed_at_thirty_days(
        self, vaccinations: InMemoryRepository[Vaccination]
    ) -> None:
        detector = DuplicateDetector(vaccinations, window_days=30)
        await self._store(vaccinations, NOW - timedelta(days=30))

        assert await detector.is_duplicate("BOV-1", "vacc_001", NOW)
        assert not await detector.is_duplicate("BOV-1", "vacc_001", NOW + timedelta(days=1))

    async def test_other_animal_or_vaccine_is_not_a_duplicate(
        self, vaccinations: InMemoryRepository[Vaccination]
    ) -> None:
        detector = DuplicateDetector(vaccinations)
        await self._store(vaccinations, NOW)

        assert not await detector.is_duplicate("BOV-2", "vacc_001", NOW)
        assert not await detector.is_duplicate("BOV-1", "vacc_002", NOW)

    def test_lookback_bounds(self, vaccinations: InMemoryRepository[Vaccination]) -> None:
        window = DuplicateDetector(vaccinations, window_days=30).lookback(NOW)
        assert window.start == NOW - timedelta(days=30)
        assert window.end == NOW


class TestHealthScore:
    @given(
        active_diseases=st.integers(min_value=0, max_value=50),
        consultations=st.integers(min_value=0, max_value=100),
    )
    def test_score_is_clamped(self, active_diseases: int, consultations: int) -> None:
        score = health_score(active_diseases, consultations)

        expected = 100 - 20 * active_diseases - (10 if consultations > 5 else 0)
        assert 0 <= score <= 100
        assert score == max(0, expected)

    def test_many_diseases_bottom_out_at_zero(self) -> None:
        assert health_score(active_diseases=50, consultations=0) == 0

    def test_healthy_animal_has_no_findings(self) -> None:
        assessment = assess(consultations=1, vaccinations=2, active_diseases=0)

        assert assessment.health_score == 100
        assert assessment.risk_factors == []
        assert assessment.recommendations == []

    def test_sick_unvaccinated_animal(self) -> None:
        assessment = assess(consultations=6, vaccinations=0, active_diseases=2)

        assert assessment.health_score == 50
        assert assessment.risk_factors == [
            RISK_ACTIVE_DISEASES,
            RISK_MULTIPLE_CONSULTATIONS,
            RISK_NO_VACCINATIONS,
        ]
        assert assessment.recommendations == [
            RECOMMEND_VACCINATION,
            RECOMMEND_FOLLOW_UP,
            RECOMMEND_URGENT_EVALUATION,
        ]

    def test_four_consultations_is_a_risk_but_not_a_penalty(self) -> None:
        assessment = assess(consultations=4, vaccinations=1, active_diseases=0)

        assert assessment.health_score == 100
        assert assessment.risk_factors == [RISK_MULTIPLE_CONSULTATIONS]
