"""Shared builders for servermon tests."""

import asyncio

from servermon.models import MetricsSnapshot


def make_payload(cpu=20.0, memory=40.0, disk=50.0, cores=4, system=None, processes=None):
    """Build a JSON payload as served by /api/live/."""
    payload = {
        "cpu": {"usage": cpu, "cores": cores},
        "memory": {"percent": memory, "used": "6.2 GB", "total": "16 GB"},
        "disk": {"percent": disk, "used": "120 GB", "total": "256 GB"},
        "network": {"total": "1024.5", "download": "800.1 MB", "upload": "224.4 MB"},
    }
    if system is not None:
        payload["system"] = system
    if processes is not None:
        payload["top_processes"] = processes
    return payload


def make_snapshot(cpu=20.0, memory=40.0, disk=50.0, **kwargs) -> MetricsSnapshot:
    return MetricsSnapshot.from_payload(make_payload(cpu=cpu, memory=memory, disk=disk, **kwargs))


class FakeFetcher:
    """
    Scripted stand-in for MetricsFetcher.

    Each call returns (or raises) the next scripted result; the last one
    repeats. If a gate is given, every call blocks until it is set.
    """

    def __init__(self, *results, gate: asyncio.Event | None = None) -> None:
        self._results = list(results)
        self.gate = gate
        self.calls = 0
        self.closed = False

    async def fetch_metrics(self) -> MetricsSnapshot:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self._results[min(self.calls, len(self._results)) - 1]
        if isinstance(result, BaseException):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True
