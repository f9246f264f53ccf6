"""Report rendering for migration results."""

import json
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.table import Table

from rehydrate.migration.base import MigrationOutcome, MigrationResult


@dataclass
class MigrationReport:
    """Report for one or more migration results."""

    results: list[MigrationResult] = field(default_factory=list)
    source: str = "unknown"

    def __str__(self) -> str:
        """Return a formatted string representation using Rich."""
        console = Console(force_terminal=True, width=80)
        with console.capture() as capture:
            self.print(console)
        return capture.get()

    @property
    def all_valid(self) -> bool:
        return all(r.is_valid for r in self.results)

    def print(self, console: Console | None = None, show_state: bool = False) -> None:
        """Print the report to a Rich console."""
        console = console or Console()
        console.print()
        console.print(f"[bold]Migration Report[/bold] ({self.source})")
        console.print("━" * 52)

        if not self.results:
            console.print("[dim]No stores migrated[/dim]")
            console.print()
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Store", style="cyan")
        table.add_column("Version", justify="center")
        table.add_column("Outcome", justify="center")
        table.add_column("Reset fields", style="white")

        for result in self.results:
            style = self._get_outcome_style(result.outcome)
            outcome = result.outcome.value
            if result.reason is not None:
                outcome = f"{outcome} ({result.reason.value})"
            table.add_row(
                result.store_name,
                f"{result.from_version} → {result.to_version}",
                f"[{style}]{outcome}[/{style}]",
                ", ".join(result.dropped_fields) or "-",
            )

        console.print(table)
        console.print()

        if show_state:
            for result in self.results:
                console.print(f"[bold]{result.store_name}[/bold]")
                console.print_json(json.dumps(result.state, default=str))
            console.print()

        valid = sum(1 for r in self.results if r.is_valid)
        console.print(f"Summary: {valid}/{len(self.results)} stores migrated cleanly")
        console.print()

    def _get_outcome_style(self, outcome: MigrationOutcome) -> str:
        """Get Rich style for an outcome."""
        return {
            MigrationOutcome.VALID: "green",
            MigrationOutcome.PARTIAL_RECOVERY: "yellow",
            MigrationOutcome.RESET: "bold red",
        }[outcome]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "all_valid": self.all_valid,
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)
