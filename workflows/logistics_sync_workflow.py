"""Logistics Sync Workflow.

Runs the Hillebrand reconcilers as activities:
1. Shipments (documents and invoices resolve against synced shipments)
2. Documents and invoices, concurrently

Missing or rejected credentials are not retried.
"""

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import List, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.sync import (
        sync_shipments_activity,
        sync_documents_activity,
        sync_invoices_activity,
        SyncInput,
    )


TASK_QUEUE = "logistics-sync"
ALL_SYNC_TYPES = ["shipments", "documents", "invoices"]


@dataclass
class LogisticsSyncInput:
    """Input for Logistics Sync Workflow.

    Attributes:
        sync_types: Which reconcilers to run (subset of shipments, documents, invoices)
        db_path: Overrides LOGISTICS_DB_PATH for every activity
        link_policy: Overrides HILLEBRAND_LINK_POLICY (per_invoice or per_shipment)
    """
    sync_types: List[str] = field(default_factory=lambda: list(ALL_SYNC_TYPES))
    db_path: Optional[str] = None
    link_policy: Optional[str] = None


@workflow.defn
class LogisticsSyncWorkflow:
    """Workflow for one full Hillebrand sync run."""

    @workflow.run
    async def run(self, input: LogisticsSyncInput) -> dict:
        """Execute logistics sync workflow.

        Returns:
            dict keyed by sync type, each value the activity's SyncOutput as a dict
        """
        unknown = [t for t in input.sync_types if t not in ALL_SYNC_TYPES]
        if unknown:
            raise ValueError(f"Unknown sync types: {unknown}")

        workflow.logger.info(f"Starting Logistics Sync Workflow: {input.sync_types}")

        activity_options = {
            "start_to_close_timeout": timedelta(minutes=30),
            "retry_policy": RetryPolicy(
                maximum_attempts=3,
                initial_interval=timedelta(seconds=10),
                maximum_interval=timedelta(minutes=2),
                backoff_coefficient=2.0,
                # Credential failures fail the activity immediately
                non_retryable_error_types=["AuthConfigurationError", "AuthenticationError"],
            ),
        }
        sync_input = SyncInput(db_path=input.db_path, link_policy=input.link_policy)
        results = {}

        if "shipments" in input.sync_types:
            shipments = await workflow.execute_activity(
                sync_shipments_activity,
                sync_input,
                **activity_options,
            )
            results["shipments"] = asdict(shipments)
            workflow.logger.info(
                f"Shipments: created={shipments.created} updated={shipments.updated} errors={shipments.errors}"
            )

        followers = []
        if "documents" in input.sync_types:
            followers.append(("documents", sync_documents_activity))
        if "invoices" in input.sync_types:
            followers.append(("invoices", sync_invoices_activity))

        outputs = await asyncio.gather(*[
            workflow.execute_activity(fn, sync_input, **activity_options)
            for _, fn in followers
        ])
        for (sync_type, _), output in zip(followers, outputs):
            results[sync_type] = asdict(output)
            workflow.logger.info(
                f"{sync_type.capitalize()}: created={output.created} updated={output.updated} errors={output.errors}"
            )

        return results
