"""Data models for servermon."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, FiniteFloat, PositiveInt, ValidationError

from servermon.errors import PayloadError


class Severity(Enum):
    """Severity band of a percentage."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertKind(Enum):
    """Resource dimensions that can raise an alert."""

    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"


@dataclass(slots=True, frozen=True)
class CpuMetrics:
    usage: float  # 0.0 - 100.0
    cores: int


@dataclass(slots=True, frozen=True)
class UsageMetrics:
    """Percent plus pre-formatted used/total sizes (memory or disk)."""

    percent: float
    used: str
    total: str


@dataclass(slots=True, frozen=True)
class NetworkMetrics:
    total: str
    download: str
    upload: str


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """One row of the producer's top process list."""

    pid: int
    name: str
    cpu_percent: float


@dataclass(slots=True, frozen=True)
class Alert:
    """A critical condition found in one snapshot."""

    id: str
    kind: AlertKind
    message: str
    percent: float


@dataclass(slots=True, frozen=True)
class MetricsSnapshot:
    """Immutable snapshot of one poll of the metrics API."""

    cpu: CpuMetrics
    memory: UsageMetrics
    disk: UsageMetrics
    network: NetworkMetrics
    system: dict[str, Any] = field(default_factory=dict)
    top_processes: tuple[ProcessEntry, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "MetricsSnapshot":
        """
        Build a snapshot from the decoded JSON body of ``/api/live/``.

        Raises:
            PayloadError: If a required field is missing, has the wrong type
                or is not a finite number.
        """
        try:
            wire = LivePayload.model_validate(payload)
        except ValidationError as exc:
            error = exc.errors()[0]
            location = ".".join(str(part) for part in error["loc"]) or "payload"
            raise PayloadError(f"Invalid metrics payload at {location}: {error['msg']}") from exc

        return cls(
            cpu=CpuMetrics(usage=wire.cpu.usage, cores=wire.cpu.cores),
            memory=UsageMetrics(
                percent=wire.memory.percent, used=wire.memory.used, total=wire.memory.total
            ),
            disk=UsageMetrics(percent=wire.disk.percent, used=wire.disk.used, total=wire.disk.total),
            network=NetworkMetrics(
                total=wire.network.total,
                download=wire.network.download,
                upload=wire.network.upload,
            ),
            system=dict(wire.system or {}),
            top_processes=tuple(
                ProcessEntry(pid=proc.pid, name=proc.name, cpu_percent=proc.cpu_percent)
                for proc in wire.top_processes or ()
            ),
        )


def format_percent(value: float) -> str:
    """Render a percentage as the producer sent it: 95.0 -> '95', 91.25 -> '91.25'."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


# --- Wire schema of /api/live/ ---


def _number_as_text(value: Any) -> Any:
    # Producers may send sizes and rates as bare numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# Strict: JSON booleans and numeric strings are not metrics
Percent = Annotated[FiniteFloat, Field(strict=True)]
Count = Annotated[PositiveInt, Field(strict=True)]
DisplayText = Annotated[str, BeforeValidator(_number_as_text)]


class CpuPayload(BaseModel):
    usage: Percent
    cores: Count


class UsagePayload(BaseModel):
    """Memory or disk block."""

    percent: Percent
    used: DisplayText
    total: DisplayText


class NetworkPayload(BaseModel):
    total: DisplayText
    download: DisplayText
    upload: DisplayText


class ProcessPayload(BaseModel):
    pid: Annotated[int, Field(strict=True, ge=0)]
    name: DisplayText
    cpu_percent: Percent = Field(alias="cpu")


class LivePayload(BaseModel):
    """Body of ``GET /api/live/``. Unknown keys are ignored."""

    cpu: CpuPayload
    memory: UsagePayload
    disk: UsagePayload
    network: NetworkPayload
    system: dict[str, Any] | None = None
    top_processes: list[ProcessPayload] | None = None
