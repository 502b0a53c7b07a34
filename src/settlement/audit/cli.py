"""CLI query interface for the settlement audit trail.

Usage::

    python -m settlement.audit.cli --campaign camp_123 --last 7d
    python -m settlement.audit.cli --actor admin_1 --format json
"""

from __future__ import annotations

import argparse
import json
from datetime import UTC, datetime, timedelta
from typing import Any

from settlement.audit.models import EventType
from settlement.audit.store import init_audit_table, query_audit_trail
from settlement.domain.timestamps import TIMESTAMP_FORMAT
from settlement.store.database import connect_db


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for audit trail queries."""
    parser = argparse.ArgumentParser(description="Query campaign settlement audit trail")

    parser.add_argument("--actor", type=str, help="Filter by acting administrator id")
    parser.add_argument("--campaign", type=str, help="Filter by campaign ID")
    parser.add_argument("--from-date", type=str, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--to-date", type=str, help="End date (YYYY-MM-DD)")
    parser.add_argument(
        "--event-type",
        type=str,
        choices=[e.value for e in EventType],
        help="Filter by event type",
    )
    parser.add_argument(
        "--last",
        type=str,
        help='Shorthand duration (e.g., "7d", "24h", "30d")',
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )
    parser.add_argument("--limit", type=int, default=50, help="Maximum results (default: 50)")
    parser.add_argument(
        "--db",
        type=str,
        default="data/settlement.db",
        help="Path to settlement database (default: data/settlement.db)",
    )

    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Convert a shorthand duration (``7d``, ``24h``) to a UTC timestamp string.

    Raises:
        ValueError: If the format is not recognized.
    """
    if not last or len(last) < 2:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg)

    unit = last[-1]
    try:
        value = int(last[:-1])
    except ValueError:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg) from None

    now = now or datetime.now(tz=UTC)

    if unit == "d":
        result = now - timedelta(days=value)
    elif unit == "h":
        result = now - timedelta(hours=value)
    else:
        msg = f"Unrecognized duration format: {last!r}. Use 'd' for days or 'h' for hours."
        raise ValueError(msg)

    return result.strftime(TIMESTAMP_FORMAT)


def format_table(results: list[dict[str, Any]]) -> str:
    """Format audit results as a fixed-width table."""
    if not results:
        return "No results found."

    headers = ["Timestamp", "Event", "Actor", "Campaign", "Details"]
    widths = [20, 24, 16, 20, 40]

    def truncate(value: str | None, width: int) -> str:
        s = str(value or "")
        if len(s) > width:
            return s[: width - 3] + "..."
        return s

    lines: list[str] = []
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines.append(header_line)
    lines.append("-" * len(header_line))

    for row in results:
        metadata = row.get("metadata") or {}
        details = ", ".join(f"{k}={v}" for k, v in sorted(metadata.items()))
        cells = [
            truncate(row.get("timestamp"), widths[0]),
            truncate(row.get("event_type"), widths[1]),
            truncate(row.get("actor_id"), widths[2]),
            truncate(row.get("campaign_id"), widths[3]),
            truncate(details, widths[4]),
        ]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))

    return "\n".join(lines)


def format_json(results: list[dict[str, Any]]) -> str:
    return json.dumps(results, indent=2)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, query audit trail, and print results."""
    args = build_parser().parse_args(argv)

    from_date = args.from_date
    if args.last:
        from_date = parse_last_duration(args.last)

    conn = connect_db(args.db)
    try:
        init_audit_table(conn)
        results = query_audit_trail(
            conn,
            actor_id=args.actor,
            campaign_id=args.campaign,
            from_date=from_date,
            to_date=args.to_date,
            event_type=args.event_type,
            limit=args.limit,
        )
        output = format_json(results) if args.output_format == "json" else format_table(results)
        print(output)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
