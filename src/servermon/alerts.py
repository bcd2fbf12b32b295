"""Threshold classification and alert evaluation."""

from collections.abc import Iterable
from datetime import datetime

from servermon.models import Alert, AlertKind, MetricsSnapshot, Severity, format_percent

# Inclusive lower bounds on a 0-100 scale
WARNING_THRESHOLD = 70
CRITICAL_THRESHOLD = 85

_MESSAGES = {
    AlertKind.CPU: "CPU usage critical: {}%",
    AlertKind.MEMORY: "Memory usage critical: {}%",
    AlertKind.DISK: "Disk space critical: {}%",
}


def classify(percent: float) -> Severity:
    """Map a percentage to its severity band."""
    if percent >= CRITICAL_THRESHOLD:
        return Severity.CRITICAL
    if percent >= WARNING_THRESHOLD:
        return Severity.WARNING
    return Severity.NORMAL


def evaluate(snapshot: MetricsSnapshot, now: datetime | None = None) -> list[Alert]:
    """
    Derive the alert set for a snapshot.

    One alert is produced per resource (cpu, memory, disk, in that order)
    whose percentage is critical. Network and process metrics never alert.

    Args:
        snapshot: The snapshot to evaluate.
        now: Creation time used for alert ids. Defaults to the current time.
    """
    created = now if now is not None else datetime.now()
    stamp = int(created.timestamp() * 1000)

    readings = (
        (AlertKind.CPU, snapshot.cpu.usage),
        (AlertKind.MEMORY, snapshot.memory.percent),
        (AlertKind.DISK, snapshot.disk.percent),
    )

    alerts = []
    for kind, percent in readings:
        if classify(percent) is not Severity.CRITICAL:
            continue
        alerts.append(
            Alert(
                id=f"{kind.value}-{stamp}",
                kind=kind,
                message=_MESSAGES[kind].format(format_percent(percent)),
                percent=percent,
            )
        )
    return alerts


def dismiss(alerts: Iterable[Alert], alert_id: str) -> list[Alert]:
    """Return the alerts without the one whose id matches."""
    return [alert for alert in alerts if alert.id != alert_id]
