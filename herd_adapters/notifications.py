"""
Notification dispatchers.

Production deployments plug in SMS, e-mail or push delivery; these two are
for development: one writes structured log events, the other renders alerts
on the terminal.
"""

from datetime import datetime

import structlog
from rich.console import Console
from rich.panel import Panel

from herd_health.domain.models import HealthAlert

logger = structlog.get_logger(__name__)

SEVERITY_STYLE = {"low": "cyan", "medium": "yellow", "high": "red", "critical": "bold white on red"}


class LoggingNotificationDispatcher:
    def __init__(self) -> None:
        self.logger = logger.bind(component="logging_notifications")

    async def send_health_alert(self, alert: HealthAlert) -> None:
        self.logger.info(
            "health_alert_notification",
            alert_id=alert.id,
            bovine_id=alert.bovine_id,
            alert_type=alert.alert_type.value,
            severity=alert.severity.value,
            message=alert.message,
        )

    async def send_vaccination_reminder(
        self, bovine_id: str, vaccine_name: str, due_date: datetime
    ) -> None:
        self.logger.info(
            "vaccination_reminder_notification",
            bovine_id=bovine_id,
            vaccine_name=vaccine_name,
            due_date=due_date.isoformat(),
        )


class ConsoleNotificationDispatcher:
    """Development dispatcher that prints to the console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def send_health_alert(self, alert: HealthAlert) -> None:
        style = SEVERITY_STYLE.get(alert.severity.value, "white")
        lines = [
            f"[bold]{alert.message}[/bold]",
            f"Bovine: {alert.bovine_id}",
            f"Triggered: {alert.trigger_date.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            alert.details,
        ]
        if alert.due_date:
            lines.append(f"Due: {alert.due_date.date().isoformat()}")
        if alert.actions:
            lines.append("Actions:")
            lines.extend(f"  • {action}" for action in alert.actions)

        self.console.print(
            Panel(
                "\n".join(lines),
                title=f"{alert.severity.value.upper()} · {alert.alert_type.value}",
                border_style=style,
            )
        )

    async def send_vaccination_reminder(
        self, bovine_id: str, vaccine_name: str, due_date: datetime
    ) -> None:
        self.console.print(
            f"[green]Reminder[/green] {vaccine_name} for bovine {bovine_id} "
            f"due {due_date.date().isoformat()}"
        )
