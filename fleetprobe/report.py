"""
Report generator – produces console, JSON and Markdown outputs.

One row per endpoint: status, duration, error, and where the result
media was saved.  Media is written next to the reports as
``<endpoint>.png`` (images) or ``<endpoint>.mp4`` (videos).
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from rich.console import Console
from rich.table import Table

from fleetprobe.models import Endpoint, ResultKind, RunState, RunStatus

logger = logging.getLogger(__name__)


# ── Data models ──────────────────────────────────────────────────────


@dataclass
class EndpointOutcome:
    endpoint_id: str
    name: str
    url: str
    status: str
    duration_seconds: float | None = None
    error: str | None = None
    result_kind: str | None = None
    media_path: str | None = None
    logs: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.status == RunStatus.SUCCESS.value


@dataclass
class FleetReport:
    workflow: str
    timestamp: str = ""
    total_duration_s: float = 0.0
    overall_pass: bool = True
    outcomes: list[EndpointOutcome] = field(default_factory=list)

    def add(self, outcome: EndpointOutcome) -> None:
        self.outcomes.append(outcome)
        if not outcome.passed:
            self.overall_pass = False

    @property
    def passed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.passed)

    def finalize(self) -> None:
        self.timestamp = datetime.now(timezone.utc).isoformat()
        if not self.outcomes:
            self.overall_pass = False


def media_bytes(state: RunState) -> tuple[bytes, str] | None:
    """Decode a run's result into ``(bytes, extension)``; ``None`` if there is none."""
    if state.result_kind == ResultKind.VIDEO and state.result_content:
        return state.result_content, "mp4"
    if state.result_kind == ResultKind.IMAGE and state.result_payload:
        try:
            return base64.b64decode(state.result_payload, validate=True), "png"
        except (binascii.Error, ValueError):
            logger.warning("Result payload is not valid base64; image not saved")
    return None


def save_media(endpoint_id: str, state: RunState, directory: str) -> str | None:
    media = media_bytes(state)
    if media is None:
        return None
    data, ext = media
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f"{endpoint_id}.{ext}")
    with open(path, "wb") as f:
        f.write(data)
    return path


def build_report(
    workflow: str,
    endpoints: list[Endpoint],
    states: dict[str, RunState],
    *,
    media_dir: str | None = None,
    total_duration_s: float = 0.0,
) -> FleetReport:
    report = FleetReport(workflow=workflow, total_duration_s=total_duration_s)
    for ep in endpoints:
        state = states.get(ep.id, RunState())
        media_path = save_media(ep.id, state, media_dir) if media_dir else None
        report.add(
            EndpointOutcome(
                endpoint_id=ep.id,
                name=ep.name,
                url=ep.base_url,
                status=state.status.value,
                duration_seconds=state.duration_seconds,
                error=state.error,
                result_kind=state.result_kind.value if state.result_kind else None,
                media_path=media_path,
                logs=list(state.logs),
            )
        )
    report.finalize()
    return report


# ── Report writers ───────────────────────────────────────────────────


def write_reports(report: FleetReport, directory: str, console: Console | None = None) -> None:
    """Write JSON, Markdown, and console reports."""
    os.makedirs(directory, exist_ok=True)
    console = console or Console()
    _write_json(report, directory, console)
    _write_markdown(report, directory, console)
    _write_console(report, console)


def _to_dict(report: FleetReport) -> dict[str, Any]:
    data = asdict(report)
    data["passed_count"] = report.passed_count
    return data


def _fmt_duration(seconds: float | None) -> str:
    return f"{seconds:.2f}s" if seconds is not None else "--"


def _write_json(report: FleetReport, directory: str, console: Console) -> None:
    path = os.path.join(directory, "report.json")
    with open(path, "w") as f:
        json.dump(_to_dict(report), f, indent=2, default=str)
    console.print(f"  📄 JSON report: {path}")


def _write_markdown(report: FleetReport, directory: str, console: Console) -> None:
    path = os.path.join(directory, "report.md")
    lines = [
        f"# Fleet Report – {report.workflow} – {report.timestamp}",
        "",
        f"**Overall**: {'✅ PASS' if report.overall_pass else '❌ FAIL'}  ",
        f"**Endpoints**: {report.passed_count}/{len(report.outcomes)} succeeded  ",
        f"**Duration**: {report.total_duration_s:.1f}s",
        "",
        "## Endpoints",
        "",
        "| Endpoint | URL | Status | Duration | Detail |",
        "|----------|-----|--------|----------|--------|",
    ]
    for o in report.outcomes:
        status = "✅ PASS" if o.passed else f"❌ {o.status.upper()}"
        detail = o.error or (o.media_path or o.result_kind or "")
        lines.append(f"| {o.name} | {o.url} | {status} | {_fmt_duration(o.duration_seconds)} | {detail[:80]} |")

    failed = [o for o in report.outcomes if not o.passed]
    if failed:
        lines += ["", "## Failure Logs"]
        for o in failed:
            lines += ["", f"### {o.name}", "", "```"]
            lines += o.logs or ["(no logs)"]
            lines.append("```")

    with open(path, "w") as f:
        f.write("\n".join(lines) + "\n")
    console.print(f"  📄 Markdown report: {path}")


def _write_console(report: FleetReport, console: Console) -> None:
    console.print()
    console.rule(f"[bold]Fleet Report – {report.workflow}[/bold]")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Endpoint")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    table.add_column("Detail")

    for o in report.outcomes:
        if o.passed:
            status = "[green]SUCCESS[/green]"
        else:
            status = f"[red]{o.status.upper()}[/red]"
        detail = o.error or o.media_path or o.result_kind or ""
        table.add_row(o.name, status, _fmt_duration(o.duration_seconds), detail[:80])

    console.print(table)
    color = "green" if report.overall_pass else "red"
    console.print(
        f"\n[bold]Result:[/bold] [{color}]{report.passed_count}/{len(report.outcomes)} succeeded[/{color}] "
        f"in {report.total_duration_s:.1f}s"
    )
