"""Typer CLI entrypoint for findingsync."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from packages.config.logs import configure_logging
from packages.config.settings import SyncSettings, load_settings
from packages.contrast.findings import collect_findings
from packages.exporters.jsonl import read_jsonl, write_jsonl
from packages.reconcile.pipeline import build_findings_pipeline, make_clients
from packages.schema.errors import SyncError
from packages.schema.models import Finding

app = typer.Typer(add_completion=False)
console = Console()

_VALID_FORMATS = {"json", "table"}
_DEFAULT_CONFIG = Path("findingsync.yaml")
_DEFAULT_OUT = Path("artifacts/findings.jsonl")


def _normalize_formats(values: Sequence[str]) -> List[str]:
    if not values:
        return ["json"]
    normalized = []
    for value in values:
        fmt = value.lower()
        if fmt not in _VALID_FORMATS:
            raise typer.BadParameter(
                f"Unsupported format '{value}'. Choose from {sorted(_VALID_FORMATS)}"
            )
        if fmt not in normalized:
            normalized.append(fmt)
    return normalized


def _load(config: Optional[Path]) -> SyncSettings:
    if config is None and _DEFAULT_CONFIG.exists():
        config = _DEFAULT_CONFIG
    try:
        return load_settings(config)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Invalid configuration: {exc}[/]")
        raise typer.Exit(code=2) from exc


@app.command()
def collect(
    config: Optional[Path] = typer.Option(None, "--config", help="Flat YAML option file"),
    format: List[str] = typer.Option(["json"], "--format", help="Repeatable option: json, table"),
    out: Path = typer.Option(_DEFAULT_OUT, "--out", help="Output path for JSONL"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Pull findings from Contrast and keep those not yet tracked in Jira."""

    configure_logging(verbose)
    formats = _normalize_formats(format)
    settings = _load(config)
    if settings.backend is None:
        raise typer.BadParameter("contrast_* options are required for collect")

    tracker, backend = make_clients(settings)
    try:
        findings = collect_findings(
            backend,
            settings.backend.app_name,
            settings.backend.filter_options,
            strict_servers=settings.backend.strict_servers,
        )
        reported = build_findings_pipeline(settings, tracker).run(findings)
    except SyncError as exc:
        console.print(f"[red]Collection failed: {exc}[/]")
        raise typer.Exit(code=2) from exc

    _export(reported, formats=formats, out=out)
    console.print(f"[green]{len(reported)} new finding(s) out of {len(findings)}[/]")


@app.command()
def dedup(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Findings JSONL"),
    config: Optional[Path] = typer.Option(None, "--config", help="Flat YAML option file"),
    format: List[str] = typer.Option(["json"], "--format", help="Repeatable option: json, table"),
    out: Path = typer.Option(_DEFAULT_OUT, "--out", help="Output path for JSONL"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Drop findings from SOURCE that already have an open Jira ticket."""

    configure_logging(verbose)
    formats = _normalize_formats(format)
    settings = _load(config)
    findings = read_jsonl(source)

    tracker, _ = make_clients(settings)
    try:
        reported = build_findings_pipeline(settings, tracker).run(findings)
    except SyncError as exc:
        console.print(f"[red]Dedup failed: {exc}[/]")
        raise typer.Exit(code=2) from exc

    _export(reported, formats=formats, out=out)
    console.print(f"[green]{len(reported)} new finding(s) out of {len(findings)}[/]")


def _export(findings: List[Finding], *, formats: Sequence[str], out: Path) -> None:
    if "json" in formats:
        write_jsonl(out, findings)
        console.log(f"Wrote {len(findings)} finding(s) to {out}")

    if "table" in formats:
        table = Table(title="findingsync findings")
        table.add_column("Severity")
        table.add_column("Description")
        table.add_column("Source")
        table.add_column("Fingerprint")
        for finding in findings:
            table.add_row(finding.severity, finding.description, finding.source, finding.fingerprint)
        console.print(table)


if __name__ == "__main__":  # pragma: no cover - manual execution
    app()
