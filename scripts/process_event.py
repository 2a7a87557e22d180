"""Process one truck event from a JSON file and print its move plan."""
import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from app.database import async_session_factory, init_db
from app.schemas.yard import EventIntake, PreplanningCreate
from app.services.yard_service import build_event_processor


async def run(event_path: Path, preplanning_path: Path | None) -> int:
    try:
        event = EventIntake.model_validate_json(event_path.read_text(encoding="utf-8"))
        preplanning = None
        if preplanning_path:
            preplanning = PreplanningCreate.model_validate_json(
                preplanning_path.read_text(encoding="utf-8")
            ).model_dump()
    except ValidationError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2

    await init_db()
    processor = build_event_processor(async_session_factory)
    result = await processor.submit(event.to_planning_event(), preplanning)

    print(json.dumps(result.as_dict(), indent=2, default=str))
    if result.succeeded:
        plan = result.plan
        location = plan.to_sid if plan.move_type == "drop_off" else plan.from_sid
        tier = plan.to_tier if plan.move_type == "drop_off" else plan.from_tier
        print(f"Simulation Success: {plan.move_type.upper()} {plan.container_id}", file=sys.stderr)
        print(f"   Location: {location} (Tier {tier})", file=sys.stderr)
        return 0

    print(f"Simulation Error: {result.error_kind}: {result.error_reason}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Plan a single truck event against the current yard")
    parser.add_argument("--event_json", type=Path, required=True, help="Event intake JSON file")
    parser.add_argument("--preplanning_json", type=Path, default=None, help="Optional preplanning JSON file")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.event_json, args.preplanning_json)))
