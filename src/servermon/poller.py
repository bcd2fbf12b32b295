"""Poll loop for servermon: fetch, evaluate, publish."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Protocol

from servermon import alerts as alert_rules
from servermon.errors import FetchError
from servermon.models import Alert, MetricsSnapshot

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.1
UNEXPECTED_ERROR = "Unexpected error while fetching metrics"


class Phase(Enum):
    """Lifecycle phase of the dashboard."""

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class DashboardState:
    """Everything the rendering layer reads. Replaced wholesale on change."""

    phase: Phase = Phase.LOADING
    snapshot: MetricsSnapshot | None = None
    error: str | None = None
    alerts: tuple[Alert, ...] = ()
    last_updated: datetime | None = None
    stale: bool = False  # snapshot is from before the current error


class Fetcher(Protocol):
    """Anything that can produce one snapshot per call, raising FetchError on failure."""

    async def fetch_metrics(self) -> MetricsSnapshot: ...


class PollLoop:
    """
    Polls a fetcher on a fixed cadence and keeps the dashboard state.

    The loop is the only writer of the state. It runs as an asyncio task on
    the caller's event loop, so fetches suspend only at the network call and
    everything else applies in one step. Ticks never overlap: a tick that
    falls due while a fetch is outstanding is skipped.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        on_update: Callable[[DashboardState], None] | None = None,
        interval: float = 1.0,
        keep_stale: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the PollLoop.

        Args:
            fetcher: Source of snapshots.
            on_update: Called with the new state after every change.
            interval: Seconds between ticks. Default 1.0s.
            keep_stale: Keep showing the last good snapshot after a failure
                instead of clearing it.
            clock: Time source for alert ids and "last updated".
        """
        self._fetcher = fetcher
        self._on_update = on_update
        self._interval = max(MIN_INTERVAL, interval)
        self._keep_stale = keep_stale
        self._clock = clock
        self._state = DashboardState()
        self._task: asyncio.Task[None] | None = None
        self._in_flight = False
        # Bumped by stop(); results from an older generation are dropped
        self._generation = 0

    @property
    def state(self) -> DashboardState:
        """Get the current dashboard state."""
        return self._state

    @property
    def interval(self) -> float:
        """Get the current poll interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the poll interval."""
        self._interval = max(MIN_INTERVAL, value)

    @property
    def is_running(self) -> bool:
        """Check if the polling task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        """Check if a fetch is outstanding."""
        return self._in_flight

    def start(self) -> None:
        """Start polling. Must be called from a running event loop."""
        if self.is_running:
            return

        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="servermon-poll"
        )

    def stop(self) -> None:
        """Stop polling and discard the result of any fetch still in flight."""
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def dismiss(self, alert_id: str) -> bool:
        """Remove one alert from the live set. Returns False if it is unknown."""
        remaining = alert_rules.dismiss(self._state.alerts, alert_id)
        if len(remaining) == len(self._state.alerts):
            return False
        self._publish(replace(self._state, alerts=tuple(remaining)))
        return True

    async def tick(self) -> bool:
        """
        Run one fetch and apply its outcome.

        Returns:
            True if the outcome was applied, False if the tick was skipped
            because another fetch was outstanding or the loop was stopped
            while this one was in flight.
        """
        if self._in_flight:
            logger.debug("Skipping tick, previous fetch still outstanding")
            return False

        generation = self._generation
        snapshot: MetricsSnapshot | None = None
        failure: str | None = None
        self._in_flight = True
        try:
            snapshot = await self._fetcher.fetch_metrics()
        except FetchError as exc:
            failure = exc.message
        except Exception:
            logger.exception("Unexpected error while fetching metrics")
            failure = UNEXPECTED_ERROR
        finally:
            self._in_flight = False

        if generation != self._generation:
            logger.debug("Dropping result that arrived after stop()")
            return False
        if failure is not None:
            self._apply_failure(failure)
        else:
            self._apply_snapshot(snapshot)
        return True

    async def _run(self) -> None:
        """Main polling loop running as an asyncio task."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            try:
                await self.tick()
            except Exception:
                logger.exception("Unexpected error during poll tick")

            next_tick += self._interval
            now = loop.time()
            if next_tick < now:
                missed = int((now - next_tick) // self._interval) + 1
                logger.debug("Fetch overran the interval, skipping %d tick(s)", missed)
                next_tick += missed * self._interval
            await asyncio.sleep(next_tick - now)

    def _apply_snapshot(self, snapshot: MetricsSnapshot) -> None:
        now = self._clock()
        alerts = alert_rules.evaluate(snapshot, now)
        logger.debug("Snapshot applied with %d alert(s)", len(alerts))
        self._publish(
            DashboardState(
                phase=Phase.READY,
                snapshot=snapshot,
                error=None,
                alerts=tuple(alerts),
                last_updated=now,
                stale=False,
            )
        )

    def _apply_failure(self, message: str) -> None:
        # Alerts are not recomputed on a failed tick
        keep = self._keep_stale and self._state.snapshot is not None
        self._publish(
            replace(
                self._state,
                phase=Phase.FAILED,
                snapshot=self._state.snapshot if keep else None,
                error=message,
                stale=keep,
            )
        )

    def _publish(self, state: DashboardState) -> None:
        self._state = state
        if self._on_update is not None:
            self._on_update(state)
