"""
Engine services.

This package contains the record manager facade and the components it
composes: validation, id generation, scheduling, duplicate detection,
health scoring, statistics and alerting.
"""

from .alerts import AlertEngine, sort_alerts
from .duplicates import DuplicateDetector
from .health_metrics import HealthMetricsCalculator
from .health_records import HealthRecordManager
from .ids import EntityKind, IdGenerator, SequentialIdGenerator, TimeRandomIdGenerator
from .ports import DateRange, HealthRepositories, RecordQuery
from .scheduling import ScheduleCalculator
from .statistics import HealthStatisticsCalculator
from .validation import ValidationGate

__all__ = [
    "AlertEngine",
    "DateRange",
    "DuplicateDetector",
    "EntityKind",
    "HealthMetricsCalculator",
    "HealthRecordManager",
    "HealthRepositories",
    "HealthStatisticsCalculator",
    "IdGenerator",
    "RecordQuery",
    "ScheduleCalculator",
    "SequentialIdGenerator",
    "TimeRandomIdGenerator",
    "ValidationGate",
    "sort_alerts",
]
