"""Worker for the logistics sync pipeline.

Connects to Temporal, listens on the logistics-sync task queue and
executes LogisticsSyncWorkflow and the Hillebrand sync activities.

Run with --queue <name> to poll a different task queue.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from workflows.logistics_sync_workflow import LogisticsSyncWorkflow, TASK_QUEUE
from activities.sync import (
    sync_shipments_activity,
    sync_documents_activity,
    sync_invoices_activity,
)
from core.observability.logging import configure_logging, get_logger


logger = get_logger(__name__)

ACTIVITIES = [
    sync_shipments_activity,
    sync_documents_activity,
    sync_invoices_activity,
]

WORKFLOWS = [LogisticsSyncWorkflow]


def build_worker(client, task_queue: str = TASK_QUEUE) -> Worker:
    """Create a worker registered with all logistics workflows and activities."""
    return Worker(
        client,
        task_queue=task_queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )


async def run_worker(queue: str = TASK_QUEUE):
    """Start worker listening on the task queue.

    Args:
        queue: Task queue to poll

    Raises:
        Exception: If connection to Temporal fails
    """
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    worker = build_worker(client, queue)
    logger.info(
        f"Worker created for queue '{queue}'",
        extra_fields={"workflows": len(WORKFLOWS), "activities": len(ACTIVITIES)},
    )

    try:
        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Logistics Sync Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=TASK_QUEUE,
        help=f"Task queue to poll (default: {TASK_QUEUE})"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines instead of human-readable output"
    )

    args = parser.parse_args()
    configure_logging(json_format=args.json_logs, force=True)

    try:
        asyncio.run(run_worker(queue=args.queue))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    main()
