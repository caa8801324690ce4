#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date, datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.planner.errors import ConfigError, InputError, ReasoningUnavailable  # noqa: E402
from backend.planner.logging_config import configure_structlog  # noqa: E402
from backend.planner.schemas import PlanResponse  # noqa: E402
from backend.planner.settings import settings  # noqa: E402
from backend.planner.synthesizer import PlanSynthesizer  # noqa: E402
from backend.planner.types import Plan  # noqa: E402


def _render_text(plan: Plan) -> str:
    if not plan.items:
        lines = ["No matching sessions found."]
    else:
        lines = []
        for item in plan.items:
            when = item.start_time.strftime("%a %d %b %H:%M") if item.start_time else item.time_text
            details = " | ".join(part for part in (when, item.location) if part)
            lines.append(f"{item.rank:>2}. [{item.urgency.value}] {item.title}")
            if details:
                lines.append(f"    {details}")
            lines.append(f"    {item.rationale}")
    if plan.summary:
        lines.extend(["", plan.summary])
    if plan.degraded:
        lines.extend(["", "(search was unavailable for part of this plan)"])
    return "\n".join(lines)


async def _run(objective: str, now: datetime | None) -> Plan:
    synthesizer = PlanSynthesizer.from_settings(settings)
    if now is not None:
        synthesizer.clock = lambda: now
    try:
        return await synthesizer.synthesize(objective)
    finally:
        await synthesizer.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Plan a conference day from a free-text objective.")
    parser.add_argument("objective", help="What you want to get out of the conference")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        help="Reference time (ISO 8601) used for urgency, defaults to the current time",
    )
    parser.add_argument(
        "--conference-date",
        type=date.fromisoformat,
        help="Day that bare weekday/time references resolve against (YYYY-MM-DD)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args(argv)

    configure_structlog(json_logs=False, level="DEBUG" if args.verbose else "WARNING")
    if args.conference_date is not None:
        settings.CONFERENCE_DATE = args.conference_date

    try:
        settings.validate_required()
        plan = asyncio.run(_run(args.objective, args.now))
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except InputError as exc:
        print(f"Invalid objective: {exc}", file=sys.stderr)
        return 2
    except ReasoningUnavailable as exc:
        print(f"Planning service unavailable: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(PlanResponse.from_plan(plan).model_dump(), ensure_ascii=False, indent=2))
    else:
        print(_render_text(plan))
    return 0


if __name__ == "__main__":
    sys.exit(main())
