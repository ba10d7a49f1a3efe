"""Entry point for vitals — `vitals serve` / `vitals check`."""

from __future__ import annotations

import argparse
import json
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel

from vitals.api.server import build_service
from vitals.config import settings
from vitals.health.errors import ConfigurationError
from vitals.health.formatting import render_report, report_to_dict

console = Console()


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(
        Panel.fit(
            f"[bold]vitals health endpoint[/bold]\n"
            f"Bind:   {settings.api_host}:{settings.api_port}\n"
            f"Probes: {settings.probes_file}",
            border_style="green",
        )
    )
    uvicorn.run(
        "vitals.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


def run_check(tags: list[str] | None, as_json: bool, probes_file: str | None = None) -> int:
    """Run one health query and print it. Returns the process exit code."""
    try:
        service = build_service(probes_file)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return 2

    report = service.run_health_check(tags)

    if as_json:
        print(json.dumps(report_to_dict(report), indent=2))
    else:
        render_report(report, console)
    return 0 if report.is_healthy else 1


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="vitals service health")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the health API server")

    check_parser = sub.add_parser("check", help="Run all probes once and print the report")
    check_parser.add_argument(
        "--tag", action="append", dest="tags",
        help="Only run probes with this tag (repeatable)",
    )
    check_parser.add_argument("--json", action="store_true", help="Print the JSON body")
    check_parser.add_argument("--probes-file", help=f"Override {settings.probes_file}")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        sys.exit(run_check(args.tags, args.json, args.probes_file))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
