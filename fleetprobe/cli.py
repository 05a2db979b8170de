#!/usr/bin/env python3
"""
Fleet probe – run one workflow against every endpoint at once.

Usage:
  python -m fleetprobe.cli T2I                             # text-to-image on the whole fleet
  python -m fleetprobe.cli I2I --image a.png --image b.png  # image edit with two references
  python -m fleetprobe.cli I2V --image start.jpg            # image-to-video
  python -m fleetprobe.cli T2I --endpoint s3                # re-run a single endpoint
  python -m fleetprobe.cli T2I --language "Bahasa Malaysia"

The bearer token comes from ``--token`` or ``FLEETPROBE_AUTH_TOKEN``.
Exit code is 0 only when every endpoint succeeded.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
import time

from rich.console import Console

from fleetprobe.config import ARTIFACTS_DIR, AUTH_TOKEN, PRESET_PROMPTS, preset_prompt
from fleetprobe.logging import setup_logging
from fleetprobe.models import ReferenceImage, RunState, WorkflowKind
from fleetprobe.orchestrator import Orchestrator
from fleetprobe.report import build_report, write_reports

MAX_REFERENCE_IMAGES = 2


def load_image(path: str) -> ReferenceImage:
    mime_type, _ = mimetypes.guess_type(path)
    with open(path, "rb") as f:
        return ReferenceImage(data=f.read(), mime_type=mime_type or "image/png")


class LogTail:
    """Observer that prints each new run log line as it is published."""

    def __init__(self, console: Console):
        self.console = console
        self._seen: dict[str, int] = {}

    def __call__(self, endpoint_id: str, state: RunState) -> None:
        seen = self._seen.get(endpoint_id, 0)
        if len(state.logs) < seen:
            seen = 0
        for line in state.logs[seen:]:
            self.console.print(f"  [dim]{endpoint_id:>4}[/dim] {line}", highlight=False)
        self._seen[endpoint_id] = len(state.logs)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fleet probe")
    parser.add_argument("workflow", choices=[k.value for k in WorkflowKind], help="Workflow to run")
    parser.add_argument("--prompt", help="Prompt text (defaults to the preset for --language)")
    parser.add_argument("--language", choices=sorted(PRESET_PROMPTS), default=None, help="Preset prompt language")
    parser.add_argument("--image", action="append", default=[], help="Reference image path (up to 2)")
    parser.add_argument("--endpoint", help="Run a single endpoint by id")
    parser.add_argument("--token", default=AUTH_TOKEN, help="Bearer token (default: FLEETPROBE_AUTH_TOKEN)")
    parser.add_argument("--out", default=ARTIFACTS_DIR, help="Directory for reports and result media")
    parser.add_argument("--quiet", action="store_true", help="Do not stream run logs")
    return parser


async def probe(args: argparse.Namespace, console: Console) -> int:
    kind = WorkflowKind(args.workflow)
    prompt = args.prompt or preset_prompt(args.language)
    images = [load_image(p) for p in args.image[:MAX_REFERENCE_IMAGES]]

    orchestrator = Orchestrator()
    if not args.quiet:
        orchestrator.store.subscribe(LogTail(console))

    endpoints = orchestrator.endpoints
    t0 = time.monotonic()
    if args.endpoint:
        endpoints = [orchestrator.runner(args.endpoint).endpoint]
        states = {args.endpoint: await orchestrator.run_one(args.endpoint, kind, prompt, images, args.token)}
    else:
        states = await orchestrator.run_all(kind, prompt, images, args.token)

    report = build_report(
        kind.value,
        endpoints,
        states,
        media_dir=args.out,
        total_duration_s=time.monotonic() - t0,
    )
    write_reports(report, args.out, console)
    return 0 if report.overall_pass else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_format="text")
    console = Console()

    console.print("\n" + "═" * 60)
    console.print(f"  FLEET PROBE – {args.workflow}")
    console.print("═" * 60 + "\n")

    if len(args.image) > MAX_REFERENCE_IMAGES:
        console.print(f"  ⚠  Only the first {MAX_REFERENCE_IMAGES} images are used")
    return asyncio.run(probe(args, console))


if __name__ == "__main__":
    sys.exit(main())
