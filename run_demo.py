"""
End-to-end walkthrough of the health record engine with in-memory adapters.

Covers:
1. Configuration loading
2. Medical records, vaccinations, treatment plans and disease cases
3. Duplicate and validation rejections
4. Health metrics, vaccination schedule, alert scan and ranch statistics

Run with: uv run python run_demo.py
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from herd_adapters.biosecurity import LoggingBiosecurityWorkflow
from herd_adapters.geolocation import BoundsGeolocationValidator
from herd_adapters.memory.herd import InMemoryHerdDirectory
from herd_adapters.memory.inventory import InMemoryInventory
from herd_adapters.memory.repository import build_repositories
from herd_adapters.notifications import ConsoleNotificationDispatcher
from herd_health.config import get_config
from herd_health.domain.errors import HealthRecordError
from herd_health.domain.models import Location, Period
from herd_health.observability import configure_logging
from herd_health.services.health_records import HealthRecordManager

console = Console()

RANCH = "ranch-north"
PASTURE = Location(latitude=4.7110, longitude=-74.0721)


def build_manager(now: datetime) -> HealthRecordManager:
    config = get_config()
    herd = InMemoryHerdDirectory()
    for tag in ("BOV-001", "BOV-002", "BOV-003"):
        herd.add(tag, RANCH)

    return HealthRecordManager(
        repositories=build_repositories(),
        notifier=ConsoleNotificationDispatcher(console),
        geolocation=BoundsGeolocationValidator(),
        inventory=InMemoryInventory(
            {"vacc_001": 50, "vacc_002": 20, "med_oxy": 500, "med_meloxicam": 100}
        ),
        herd=herd,
        biosecurity=LoggingBiosecurityWorkflow(),
        config=config.engine,
        clock=lambda: now,
    )


async def demo_records(manager: HealthRecordManager, now: datetime) -> bool:
    console.print(Panel("Recording medical events", style="blue"))

    await manager.create_medical_record(
        {
            "bovine_id": "BOV-001",
            "consultation_type": "emergency_visit",
            "consultation_date": now - timedelta(days=2),
            "diagnosis": "Pneumonia",
            "location": PASTURE,
            "medications": [{"medication_id": "med_oxy", "dosage": 20, "cost": 35.0}],
        },
        user_id="vet-7",
    )

    # Last year's dose is now overdue and will show up in the alert scan
    await manager.record_vaccination(
        {
            "bovine_id": "BOV-002",
            "vaccine_id": "vacc_001",
            "vaccine_name": "Triple bovine",
            "administration_date": now - timedelta(days=400),
            "location": PASTURE,
        },
        user_id="tech-2",
    )
    await manager.record_vaccination(
        {
            "bovine_id": "BOV-003",
            "vaccine_id": "vacc_003",
            "vaccine_name": "Clostridial booster",
            "administration_date": now - timedelta(days=175),
            "location": PASTURE,
        },
        user_id="tech-2",
    )

    await manager.create_treatment_plan(
        {
            "bovine_id": "BOV-001",
            "condition": "Pneumonia",
            "start_date": now - timedelta(days=10),
            "next_checkup": now - timedelta(days=1),
            "medications": [
                {"medication_id": "med_oxy", "dosage": 100, "cost": 100.0},
                {"medication_id": "med_meloxicam", "dosage": 10, "cost": 50.0},
            ],
        },
        user_id="vet-7",
    )

    await manager.record_disease(
        {
            "bovine_id": "BOV-001",
            "disease_name": "Bovine respiratory disease",
            "category": "respiratory",
            "severity": "critical",
            "status": "confirmed",
            "date_detected": now - timedelta(days=2),
            "is_contagious": True,
            "quarantine_required": True,
            "quarantine_end_date": now + timedelta(days=14),
        },
        user_id="vet-7",
    )

    console.print("Events recorded", style="green")
    return True


async def demo_rejections(manager: HealthRecordManager, now: datetime) -> bool:
    console.print(Panel("Testing rejections", style="blue"))

    attempts = [
        (
            "duplicate vaccination",
            manager.record_vaccination(
                {
                    "bovine_id": "BOV-002",
                    "vaccine_id": "vacc_001",
                    "vaccine_name": "Triple bovine",
                    "administration_date": now - timedelta(days=390),
                    "location": PASTURE,
                },
                user_id="tech-2",
            ),
        ),
        (
            "invalid location",
            manager.record_vaccination(
                {
                    "bovine_id": "BOV-003",
                    "vaccine_id": "vacc_002",
                    "vaccine_name": "Brucellosis",
                    "administration_date": now,
                    "location": {"latitude": 91, "longitude": 0},
                },
                user_id="tech-2",
            ),
        ),
        (
            "unavailable medication",
            manager.create_treatment_plan(
                {
                    "bovine_id": "BOV-002",
                    "condition": "Lameness",
                    "start_date": now,
                    "medications": [{"medication_id": "med_unknown", "dosage": 5, "cost": 10}],
                },
                user_id="vet-7",
            ),
        ),
    ]

    all_rejected = True
    for label, attempt in attempts:
        try:
            await attempt
        except HealthRecordError as e:
            console.print(f"Rejected {label}: [{e.code}] {e.message}", style="green")
        else:
            console.print(f"Expected {label} to be rejected", style="red")
            all_rejected = False
    return all_rejected


async def demo_reports(manager: HealthRecordManager, now: datetime) -> bool:
    console.print(Panel("Reports", style="blue"))

    metrics = await manager.calculate_health_metrics(
        "BOV-001", Period(start=now - timedelta(days=30), end=now)
    )
    metrics_table = Table(title="BOV-001 health metrics")
    metrics_table.add_column("Metric", style="cyan")
    metrics_table.add_column("Value", style="white")
    metrics_table.add_row("Health score", str(metrics.health_score))
    metrics_table.add_row("Consultations", str(metrics.consultations))
    metrics_table.add_row("Active diseases", str(metrics.active_diseases))
    metrics_table.add_row("Total cost", f"{metrics.total_cost:.2f}")
    metrics_table.add_row("Risk factors", ", ".join(metrics.risk_factors) or "-")
    metrics_table.add_row("Recommendations", ", ".join(metrics.recommendations) or "-")
    console.print(metrics_table)

    schedule = await manager.get_vaccination_schedule(RANCH, days=30)
    schedule_table = Table(title="Upcoming vaccinations (30 days)")
    schedule_table.add_column("Bovine", style="cyan")
    schedule_table.add_column("Vaccine")
    schedule_table.add_column("Due")
    schedule_table.add_column("Priority")
    for item in schedule:
        schedule_table.add_row(
            item.bovine_id,
            item.vaccine_name,
            item.scheduled_date.date().isoformat(),
            item.priority.value,
        )
    console.print(schedule_table)

    alerts = await manager.process_health_alerts(RANCH)
    console.print(f"Alert scan returned {len(alerts)} open alerts", style="yellow")

    stats = await manager.get_health_statistics(RANCH, period_days=30)
    stats_table = Table(title=f"{RANCH} statistics (30 days)")
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Value", style="white")
    stats_table.add_row("Herd size", str(stats.herd_size))
    stats_table.add_row("Sick / critical", f"{stats.sick_animals} / {stats.critical_animals}")
    stats_table.add_row("Quarantined", str(stats.quarantined_animals))
    stats_table.add_row("Vaccination coverage", f"{stats.vaccination_coverage:.1f}%")
    stats_table.add_row("Health costs", f"{stats.total_health_costs:.2f}")
    console.print(stats_table)
    return True


async def run_demo() -> None:
    console.print(Panel("Herd Health Record Engine - Walkthrough", style="bold blue"))

    configure_logging(get_config().logging)
    now = datetime.now(UTC)
    manager = build_manager(now)

    steps: list[tuple[str, Callable[[HealthRecordManager, datetime], Awaitable[bool]]]] = [
        ("Record events", demo_records),
        ("Rejections", demo_rejections),
        ("Reports", demo_reports),
    ]

    results = []
    for name, step in steps:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, await step(manager, now)))
        except HealthRecordError as e:
            console.print(f"{name} failed: [{e.code}] {e.message}", style="red")
            results.append((name, False))

    summary_table = Table(title="Summary")
    summary_table.add_column("Step", style="cyan")
    summary_table.add_column("Result", style="white")
    for name, ok in results:
        summary_table.add_row(name, "PASSED" if ok else "FAILED")
    console.print(summary_table)


if __name__ == "__main__":
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        console.print("\nStopped by user", style="yellow")
