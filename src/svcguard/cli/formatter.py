from datetime import datetime
from typing import Dict, List, Optional
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from svcguard.core.models import ServiceStatus
from svcguard.runtime.contracts import EventKind, GuardianEvent, SweepReport

# Create a stderr console for logging
error_console = Console(stderr=True)

# Create a stdout console for data
data_console = Console()

EVENT_SEVERITY: Dict[EventKind, str] = {
    EventKind.DRIFT_DETECTED: "warning",
    EventKind.SERVICES_ADDED: "info",
    EventKind.ENFORCING: "info",
    EventKind.ENFORCED: "success",
    EventKind.DISQUALIFIED: "error",
    EventKind.CYCLE_FAILED: "error",
}


class OutputFormatter:
    """
    Handles output formatting for the CLI.
    System logs go to stderr with timestamps; data (tables, lists) to stdout.
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print a timestamped system message to stderr with color coding.
        """
        style = "white"
        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        stamp = datetime.now().strftime("%H:%M:%S")
        error_console.print(f"[{style}]\\[{stamp}] {escape(message)}[/{style}]")

    @staticmethod
    def log_event(event: GuardianEvent) -> None:
        OutputFormatter.log(event.message, severity=EVENT_SEVERITY.get(event.kind, "info"))

    @staticmethod
    def log_sweep_summary(report: SweepReport) -> None:
        """One line summarizing the startup sweep."""
        if report.error:
            OutputFormatter.log(f"Startup sweep failed: {report.error}", severity="error")
            return

        severity = "warning" if report.disqualified else "success"
        OutputFormatter.log(
            (
                f"Startup sweep checked {len(report.checked)} service(s): "
                f"{len(report.stopped)} stopped, {len(report.disqualified)} removed"
            ),
            severity=severity,
        )

    @staticmethod
    def print_services(names: List[str]) -> None:
        """Print the keep-stopped list, one name per line."""
        for name in names:
            data_console.print(escape(name), highlight=False)

    @staticmethod
    def print_status_table(rows: List[tuple], title: str = "Keep-Stopped Services") -> None:
        """
        Prints the keep-stopped list with each service's current host status.
        `rows` holds (name, status-or-None, note) tuples.
        """
        table = Table(title=title, header_style="bold")
        table.add_column("Service", style="bold")
        table.add_column("Status")
        table.add_column("Note")

        for name, status, note in rows:
            table.add_row(escape(name), OutputFormatter._status_cell(status), escape(note or ""))

        data_console.print(table)

    @staticmethod
    def _status_cell(status: Optional[ServiceStatus]) -> str:
        if status is None:
            return "[red]UNKNOWN[/red]"
        if status == ServiceStatus.RUNNING:
            return "[yellow]RUNNING[/yellow]"
        if status == ServiceStatus.STOPPED:
            return "[green]STOPPED[/green]"
        return "OTHER"
