"""Settle every ended campaign in one pass.

Meant for a scheduler (cron, Kubernetes CronJob)::

    python -m settlement.engine.batch
    python -m settlement.engine.batch --now 2026-01-31T00:00:00Z --format json
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import UTC, datetime

import structlog

from settlement.app import close_services, configure_logging, initialize_services
from settlement.config import get_settings
from settlement.domain.models import Actor, BatchReport
from settlement.domain.money import ZERO
from settlement.domain.timestamps import TIMESTAMP_FORMAT
from settlement.domain.types import Role

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Settle all ACTIVE campaigns past their end date")
    parser.add_argument(
        "--now",
        type=str,
        help="Treat this UTC time (YYYY-MM-DDTHH:MM:SSZ) as now (default: current time)",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["summary", "json"],
        default="summary",
        dest="output_format",
        help="Output format (default: summary)",
    )
    return parser


def parse_now(value: str | None) -> datetime:
    """Parse ``--now``; raises ValueError for anything but the UTC timestamp format."""
    if value is None:
        return datetime.now(tz=UTC)
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def format_summary(report: BatchReport) -> str:
    lines = [
        f"finished: {len(report.finished)}",
        f"skipped:  {len(report.skipped)}",
        f"failed:   {len(report.failed)}",
    ]
    for finish in report.finished:
        distributed = sum((p.amount for p in finish.payout.payouts), ZERO)
        lines.append(
            f"  {finish.campaign_id}: {len(finish.payout.payouts)} creators paid "
            f"{distributed}, remainder {finish.payout.remainder}"
        )
    for campaign_id, error in sorted(report.failed.items()):
        lines.append(f"  {campaign_id}: FAILED {error}")
    return "\n".join(lines)


async def run(now: datetime) -> BatchReport:
    settings = get_settings()
    services = initialize_services(settings)
    try:
        actor = Actor(user_id=settings.system_actor_id, role=Role.ADMIN)
        return await services["orchestrator"].settle_ended_campaigns(actor, now=now)
    finally:
        await close_services(services)


def main(argv: list[str] | None = None) -> int:
    """Run one batch and return the process exit code (1 if any campaign failed)."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(production=settings.production)

    report = asyncio.run(run(parse_now(args.now)))
    if args.output_format == "json":
        print(report.model_dump_json(by_alias=True, indent=2))
    else:
        print(format_summary(report))
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
