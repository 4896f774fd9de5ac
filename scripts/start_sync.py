"""Start a Hillebrand logistics sync.

Three modes:
- default: start LogisticsSyncWorkflow on Temporal and wait for the result
- --schedule: register an hourly Temporal schedule for the workflow
- --direct: run the reconcilers in this process, without Temporal
"""

import argparse
import asyncio
import sys
import uuid
from datetime import timedelta
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporalio.client import (
    Schedule,
    ScheduleActionStartWorkflow,
    ScheduleIntervalSpec,
    ScheduleSpec,
)

from connectors.hillebrand.hb_client import create_client
from connectors.hillebrand.hb_mapping import DestinationDefaults
from core.config import HillebrandSettings
from core.models.logistics import LinkPolicy
from core.observability.logging import configure_logging, get_logger
from reconciliation import sync_documents, sync_invoices, sync_shipments
from temporal_client import get_temporal_client
from workflows.logistics_sync_workflow import (
    ALL_SYNC_TYPES,
    TASK_QUEUE,
    LogisticsSyncInput,
    LogisticsSyncWorkflow,
)


logger = get_logger(__name__)

SCHEDULE_ID = "logistics-sync-hourly"


async def start_sync_workflow(input: LogisticsSyncInput) -> dict:
    """Start the workflow and wait for its result."""
    workflow_id = f"logistics-sync-{uuid.uuid4().hex[:8]}"

    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    handle = await client.start_workflow(
        LogisticsSyncWorkflow.run,
        input,
        task_queue=TASK_QUEUE,
        id=workflow_id,
    )
    logger.info(f"Workflow started: {handle.id}")

    return await handle.result()


async def create_hourly_schedule(input: LogisticsSyncInput, every_minutes: int = 60) -> str:
    """Register (or fail if present) the recurring sync schedule."""
    client = await get_temporal_client()

    await client.create_schedule(
        SCHEDULE_ID,
        Schedule(
            action=ScheduleActionStartWorkflow(
                LogisticsSyncWorkflow.run,
                input,
                id=f"{SCHEDULE_ID}-run",
                task_queue=TASK_QUEUE,
            ),
            spec=ScheduleSpec(intervals=[ScheduleIntervalSpec(every=timedelta(minutes=every_minutes))]),
        ),
    )
    logger.info(f"Schedule created: {SCHEDULE_ID} (every {every_minutes} minutes)")
    return SCHEDULE_ID


async def run_direct(input: LogisticsSyncInput) -> dict:
    """Run the reconcilers in-process, shipments first."""
    settings = HillebrandSettings.from_env()
    db_path = Path(input.db_path) if input.db_path else settings.db_path
    link_policy = LinkPolicy(input.link_policy or settings.link_policy)
    destination = DestinationDefaults(
        country=settings.default_destination_country,
        city=settings.default_destination_city,
        warehouse=settings.default_destination_warehouse,
    )

    results = {}
    async with create_client(settings) as client:
        if "shipments" in input.sync_types:
            results["shipments"] = (await sync_shipments(client, db_path, destination=destination)).to_dict()
        if "documents" in input.sync_types:
            results["documents"] = (await sync_documents(client, db_path)).to_dict()
        if "invoices" in input.sync_types:
            results["invoices"] = (await sync_invoices(client, db_path, link_policy=link_policy)).to_dict()
    return results


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Start a Hillebrand logistics sync")
    parser.add_argument(
        "--only",
        choices=ALL_SYNC_TYPES,
        action="append",
        help="Sync only this type (repeatable; default: all)"
    )
    parser.add_argument("--db", type=str, default=None, help="SQLite path (default: LOGISTICS_DB_PATH)")
    parser.add_argument(
        "--link-policy",
        choices=[p.value for p in LinkPolicy],
        default=None,
        help="Invoice-shipment link policy (default: HILLEBRAND_LINK_POLICY)"
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--schedule", action="store_true", help="Register an hourly schedule")
    mode.add_argument("--direct", action="store_true", help="Run in-process without Temporal")
    args = parser.parse_args()

    configure_logging(force=True)
    input = LogisticsSyncInput(
        sync_types=args.only or list(ALL_SYNC_TYPES),
        db_path=args.db,
        link_policy=args.link_policy,
    )

    try:
        if args.schedule:
            schedule_id = asyncio.run(create_hourly_schedule(input))
            print(f"Schedule registered: {schedule_id}")
            return 0

        if args.direct:
            result = asyncio.run(run_direct(input))
        else:
            result = asyncio.run(start_sync_workflow(input))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\n=== SYNC RESULT ===")
    for sync_type, summary in result.items():
        line = f"  {sync_type}: created={summary['created']} updated={summary['updated']} errors={summary['errors']}"
        if sync_type == "invoices":
            line += f" linked={summary['linked']}"
        print(line)
    print("===================\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
