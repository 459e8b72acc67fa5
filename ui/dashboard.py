"""
Rich-based terminal rendering for measurement results.

All formatting helpers live in ``speedcheck.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from speedcheck.api import IpMetadata
from speedcheck.history import format_history_table, sparkline
from speedcheck.models import SYNTHETIC, MeasurementResult
from speedcheck.stats import format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]speedcheck[/bold cyan]\n"
            "[dim]Download, upload and latency with fallback strategies[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_client_info(meta: IpMetadata) -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("IP Address:", meta.ip or "unknown")
    table.add_row("ISP:", meta.isp or "unknown")
    location = ", ".join(p for p in (meta.region, meta.country) if p)
    if location:
        table.add_row("Location:", location)
    console.print(Panel(table, title="[bold]Client Info[/bold]", border_style="blue"))


def _source_label(source: str) -> str:
    if source == SYNTHETIC:
        return "[bold red]synthetic[/bold red]"
    return f"[dim]{source}[/dim]"


def print_result(result: MeasurementResult) -> None:
    """Print the final result panel, flagging synthesized figures."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold white")
    table.add_column(justify="right")
    table.add_column()

    table.add_row(
        "Ping",
        f"[bold yellow]{format_latency(result.ping_ms)}[/bold yellow] "
        f"[dim](jitter: {result.jitter_ms:.2f} ms²)[/dim]",
        _source_label(result.latency_source),
    )
    table.add_row(
        "Download",
        f"[bold green]{format_speed(result.download_mbps)}[/bold green]",
        _source_label(result.download_source),
    )
    table.add_row(
        "Upload",
        f"[bold blue]{format_speed(result.upload_mbps)}[/bold blue]",
        _source_label(result.upload_source),
    )

    console.print()
    console.print(
        Panel.fit(
            table,
            title=f"[bold]Results[/bold] [dim]{result.id}[/dim]",
            border_style="red" if result.synthetic else "cyan",
        )
    )
    if result.synthetic:
        console.print(
            "[yellow]Some figures could not be measured and were synthesized.[/yellow]"
        )
    console.print()


def print_history(results: List[MeasurementResult]) -> None:
    if not results:
        console.print("[dim]No stored results.[/dim]")
        return

    rows = format_history_table(results)
    table = Table(title="Measurement History", box=box.ROUNDED)
    table.add_column("When", style="dim")
    table.add_column("ID")
    table.add_column("Ping", justify="right")
    table.add_column("Download", justify="right")
    table.add_column("Upload", justify="right")
    table.add_column("ISP")
    table.add_column("", justify="center")

    for row in rows:
        table.add_row(
            row["timestamp"],
            row["id"][:12],
            format_latency(row["ping"]),
            format_speed(row["download"]),
            format_speed(row["upload"]),
            row["isp"][:24],
            "[red]S[/red]" if row["synthetic"] else "",
        )
    console.print(table)

    # oldest to newest, left to right
    downloads = [r.download_mbps for r in reversed(results)]
    if len(downloads) > 1:
        console.print(f"  Download trend: [green]{sparkline(downloads)}[/green]")
