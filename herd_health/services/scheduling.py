"""Due-date arithmetic for vaccinations and treatment follow-ups."""

from datetime import datetime, timedelta

from herd_health.config import EngineConfig, VaccineProfile
from herd_health.domain.models import SchedulePriority, VaccineCategory

CATEGORY_PRIORITY: dict[VaccineCategory, SchedulePriority] = {
    VaccineCategory.EMERGENCY: SchedulePriority.URGENT,
    VaccineCategory.CORE: SchedulePriority.HIGH,
    VaccineCategory.BOOSTER: SchedulePriority.MEDIUM,
    VaccineCategory.NON_CORE: SchedulePriority.LOW,
}


class ScheduleCalculator:
    """
    Computes next-due dates from the vaccine catalog.

    The interval table is read on every call, so an interval changed with
    set_interval() applies to the very next vaccination recorded.
    """

    def __init__(self, config: EngineConfig) -> None:
        self.default_interval_days = config.default_vaccine_interval_days
        self.default_checkup_days = config.default_checkup_days
        self.urgent_due_days = config.urgent_due_days
        self._catalog: dict[str, VaccineProfile] = dict(config.vaccine_catalog)

    def profile(self, vaccine_id: str) -> VaccineProfile | None:
        return self._catalog.get(vaccine_id)

    def interval_days(self, vaccine_id: str) -> int:
        profile = self._catalog.get(vaccine_id)
        return profile.interval_days if profile else self.default_interval_days

    def set_interval(self, vaccine_id: str, days: int) -> None:
        if days <= 0:
            raise ValueError("interval must be a positive number of days")
        profile = self._catalog.get(vaccine_id)
        if profile is None:
            profile = VaccineProfile(vaccine_id=vaccine_id, name=vaccine_id, interval_days=days)
        else:
            profile = profile.model_copy(update={"interval_days": days})
        self._catalog[vaccine_id] = profile

    def next_vaccination_due_date(self, vaccine_id: str, administration_date: datetime) -> datetime:
        return administration_date + timedelta(days=self.interval_days(vaccine_id))

    def treatment_followup_due(
        self, start_date: datetime, next_checkup: datetime | None
    ) -> datetime:
        """Explicit checkup date if the plan has one, otherwise the default window."""
        if next_checkup is not None:
            return next_checkup
        return start_date + timedelta(days=self.default_checkup_days)

    def schedule_priority(
        self, category: VaccineCategory, scheduled_date: datetime, now: datetime
    ) -> SchedulePriority:
        if scheduled_date - now <= timedelta(days=self.urgent_due_days):
            return SchedulePriority.URGENT
        return CATEGORY_PRIORITY[category]
