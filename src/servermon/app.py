"""servermon - Main Textual application."""

import argparse
import logging

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.logging import TextualHandler
from textual.message import Message
from textual.widgets import Button, DataTable, Footer, Static

from servermon.alerts import classify
from servermon.config import DashboardConfig
from servermon.fetcher import MetricsFetcher
from servermon.models import Alert, MetricsSnapshot, ProcessEntry, Severity, format_percent
from servermon.poller import DashboardState, PollLoop

logger = logging.getLogger(__name__)

SEVERITY_STYLES = {
    Severity.NORMAL: "green",
    Severity.WARNING: "yellow",
    Severity.CRITICAL: "bold red",
}


class StatusBar(Static):
    """One-line status: last update time, alert count, staleness."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    def show_state(self, state: DashboardState) -> None:
        """Render the status line for a state."""
        parts = []
        if state.last_updated is not None:
            parts.append(f"[green]●[/green] Live • Updated: {state.last_updated:%H:%M:%S}")
        else:
            parts.append("[dim]Waiting for first update…[/dim]")
        if state.alerts:
            parts.append(f"[bold red]Alerts: {len(state.alerts)}[/bold red]")
        if state.stale:
            parts.append(f"[reverse yellow] STALE [/reverse yellow] {escape(state.error or '')}")
        self.update("   ".join(parts))


class ErrorPanel(Static):
    """Shown in place of the metrics while there is no snapshot to display."""

    DEFAULT_CSS = """
    ErrorPanel {
        height: 1fr;
        content-align: center middle;
        text-align: center;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ErrorPanel."""
        super().__init__(*args, **kwargs)
        self._panel_text = Text()

    @property
    def panel_text(self) -> Text:
        """Get the text currently shown."""
        return self._panel_text

    def show_state(self, state: DashboardState, endpoint: str) -> None:
        """Show the connecting or connection-error text, naming the endpoint."""
        if state.error is None:
            markup = f"Connecting to {escape(endpoint)}…"
        else:
            markup = (
                "[bold red]Connection Error[/bold red]\n\n"
                f"{escape(state.error)}\n\n"
                f"[dim]Verify API URL: {escape(endpoint)}[/dim]"
            )
        self._panel_text = Text.from_markup(markup)
        self.update(self._panel_text)


class AlertRow(Horizontal):
    """A critical alert with a dismiss button."""

    DEFAULT_CSS = """
    AlertRow {
        height: 3;
        background: $error 20%;
        border-left: thick $error;
    }

    AlertRow .alert-message {
        width: 1fr;
        padding: 1 1 0 1;
    }
    """

    class Dismissed(Message):
        """Posted when the user dismisses an alert."""

        def __init__(self, alert_id: str) -> None:
            super().__init__()
            self.alert_id = alert_id

    def __init__(self, alert: Alert) -> None:
        super().__init__()
        self.alert = alert

    @property
    def alert_id(self) -> str:
        return self.alert.id

    def compose(self) -> ComposeResult:
        yield Static(f"⚠ Critical Alert: {escape(self.alert.message)}", classes="alert-message")
        yield Button("Dismiss", variant="error", classes="dismiss")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_message(self.Dismissed(self.alert_id))


class AlertPanel(Vertical):
    """Stack of live alerts, hidden when there are none."""

    DEFAULT_CSS = """
    AlertPanel {
        height: auto;
        display: none;
    }
    """

    def show_alerts(self, alerts: tuple[Alert, ...]) -> None:
        """Replace the rows with the given alerts."""
        self.remove_children()
        if alerts:
            self.mount(*(AlertRow(alert) for alert in alerts))
        self.display = bool(alerts)


class MetricCard(Static):
    """A single resource card coloured by severity band."""

    DEFAULT_CSS = """
    MetricCard {
        width: 1fr;
        height: 6;
        padding: 0 1;
        border: round $success;
    }

    MetricCard.-warning {
        border: round $warning;
    }

    MetricCard.-critical {
        border: heavy $error;
    }
    """

    def __init__(self, title: str, *args, **kwargs) -> None:
        """Initialize MetricCard."""
        super().__init__(*args, **kwargs)
        self._severity = Severity.NORMAL
        self.border_title = title

    @property
    def severity(self) -> Severity:
        return self._severity

    def show_metric(self, value: str, sub: str, severity: Severity) -> None:
        """Update the card's value, subtitle and severity class."""
        self._severity = severity
        self.remove_class("-normal", "-warning", "-critical")
        self.add_class(f"-{severity.value}")

        badge = ""
        if severity is Severity.CRITICAL:
            badge = "  [bold red]CRITICAL[/bold red]"
        elif severity is Severity.WARNING:
            badge = "  [yellow]WARNING[/yellow]"
        style = SEVERITY_STYLES[severity]
        self.update(f"[{style}]{escape(value)}[/{style}]{badge}\n[dim]{escape(sub)}[/dim]")


class SystemInfo(Container):
    """Key/value table of the producer's system information."""

    DEFAULT_CSS = """
    SystemInfo {
        width: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        yield DataTable(id="system-table", show_cursor=False)

    def show_system(self, system: dict) -> None:
        table = self.query_one("#system-table", DataTable)
        if not table.columns:
            table.add_column("Key", key="key")
            table.add_column("Value", key="value")
        table.clear()
        # Producer order is the display order
        for key, value in system.items():
            table.add_row(Text(str(key)), Text(str(value)))


class ProcessTable(Container):
    """Top processes, in the order the producer sent them."""

    DEFAULT_CSS = """
    ProcessTable {
        width: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table", cursor_type="row")

    def show_processes(self, processes: tuple[ProcessEntry, ...]) -> None:
        """Replace the table rows with the given processes."""
        table = self.query_one("#process-table", DataTable)
        if not table.columns:
            table.add_column("PID", key="pid", width=8)
            table.add_column("Name", key="name")
            table.add_column("CPU%", key="cpu", width=8)
        table.clear()
        for proc in processes:
            style = SEVERITY_STYLES[classify(proc.cpu_percent)]
            table.add_row(
                str(proc.pid),
                Text(proc.name),
                Text(f"{format_percent(proc.cpu_percent)}%", style=style),
            )


class DashboardApp(App):
    """Main servermon application."""

    TITLE = "servermon"
    SUB_TITLE = "Server Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        dock: top;
    }

    #cards {
        height: auto;
    }

    #details {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("d", "dismiss_alert", "Dismiss alert"),
        ("a", "actions", "Actions"),
    ]

    def __init__(
        self,
        config: DashboardConfig | None = None,
        fetcher: MetricsFetcher | None = None,
    ) -> None:
        """
        Initialize the DashboardApp.

        Args:
            config: Settings. Read from the environment when omitted.
            fetcher: Snapshot source. Built from the config when omitted.
        """
        super().__init__()
        self._config = config if config is not None else DashboardConfig()
        self._fetcher = fetcher or MetricsFetcher(
            self._config.api_url, timeout=self._config.request_timeout
        )
        self._poller = PollLoop(
            self._fetcher,
            on_update=self._render_state,
            interval=self._config.poll_interval,
            keep_stale=self._config.keep_stale,
        )

    @property
    def poller(self) -> PollLoop:
        return self._poller

    @property
    def endpoint_label(self) -> str:
        return self._config.api_url or "(not set)"

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusBar(id="status-bar")
        yield AlertPanel(id="alerts")
        yield ErrorPanel(id="error-panel")
        with Vertical(id="metrics"):
            with Horizontal(id="cards"):
                yield MetricCard("CPU Usage", id="cpu-card")
                yield MetricCard("Memory", id="memory-card")
                yield MetricCard("Disk Space", id="disk-card")
                yield MetricCard("Network", id="network-card")
            with Horizontal(id="details"):
                yield SystemInfo(id="system-info")
                yield ProcessTable(id="processes")
        yield Footer()

    def on_mount(self) -> None:
        """Render the initial state and start polling."""
        self._render_state(self._poller.state)
        self._poller.start()

    async def on_unmount(self) -> None:
        self._poller.stop()
        await self._fetcher.aclose()

    def _render_state(self, state: DashboardState) -> None:
        """Push a new dashboard state into the widgets."""
        try:
            self.query_one(StatusBar).show_state(state)
            self.query_one(AlertPanel).show_alerts(state.alerts)
            error_panel = self.query_one(ErrorPanel)
            metrics = self.query_one("#metrics")
        except NoMatches:
            # Not composed yet, or already torn down
            return

        if state.snapshot is None:
            error_panel.show_state(state, self.endpoint_label)
            error_panel.display = True
            metrics.display = False
            return

        error_panel.display = False
        metrics.display = True
        self._show_snapshot(state.snapshot)

    def _show_snapshot(self, snapshot: MetricsSnapshot) -> None:
        self.query_one("#cpu-card", MetricCard).show_metric(
            f"{format_percent(snapshot.cpu.usage)}%",
            f"{snapshot.cpu.cores} cores",
            classify(snapshot.cpu.usage),
        )
        self.query_one("#memory-card", MetricCard).show_metric(
            f"{format_percent(snapshot.memory.percent)}%",
            f"{snapshot.memory.used} / {snapshot.memory.total}",
            classify(snapshot.memory.percent),
        )
        self.query_one("#disk-card", MetricCard).show_metric(
            f"{format_percent(snapshot.disk.percent)}%",
            f"{snapshot.disk.used} / {snapshot.disk.total}",
            classify(snapshot.disk.percent),
        )
        # Network has no percentage and is never escalated
        self.query_one("#network-card", MetricCard).show_metric(
            f"{snapshot.network.total} MB",
            f"↓ {snapshot.network.download} ↑ {snapshot.network.upload}",
            Severity.NORMAL,
        )
        self.query_one(SystemInfo).show_system(snapshot.system)
        self.query_one(ProcessTable).show_processes(snapshot.top_processes)

    def on_alert_row_dismissed(self, message: AlertRow.Dismissed) -> None:
        if self._poller.dismiss(message.alert_id):
            logger.info("Alert %s dismissed", message.alert_id)

    async def action_refresh(self) -> None:
        """Poll now instead of waiting for the next tick."""
        if not await self._poller.tick():
            self.notify("Refresh already in progress")

    def action_dismiss_alert(self) -> None:
        """Dismiss the first live alert."""
        alerts = self._poller.state.alerts
        if alerts:
            self._poller.dismiss(alerts[0].id)

    def action_actions(self) -> None:
        """Handle actions (placeholder for future implementation)."""
        self.notify("Actions: Coming soon")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._poller.stop()
        self.exit()


def parse_args(argv: list[str] | None = None) -> DashboardConfig:
    """Build the config from the environment, overridden by CLI flags."""
    parser = argparse.ArgumentParser(description="Live server metrics dashboard")
    parser.add_argument("--api-url", help="Base URL of the metrics API")
    parser.add_argument("--interval", type=float, help="Seconds between polls")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument(
        "--keep-stale",
        action="store_true",
        default=None,
        help="Keep showing the last snapshot when a poll fails",
    )
    parser.add_argument("--log-level", help="Logging level (default WARNING)")
    args = parser.parse_args(argv)

    overrides = {
        "api_url": args.api_url,
        "poll_interval": args.interval,
        "request_timeout": args.timeout,
        "keep_stale": args.keep_stale,
        "log_level": args.log_level,
    }
    # Init values take priority over SERVERMON_* variables
    return DashboardConfig(**{name: value for name, value in overrides.items() if value is not None})


def main(argv: list[str] | None = None) -> None:
    """Entry point for servermon application."""
    config = parse_args(argv)
    logging.basicConfig(level=config.log_level, handlers=[TextualHandler()])
    app = DashboardApp(config)
    app.run()


if __name__ == "__main__":
    main()
