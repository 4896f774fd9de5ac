"""Workflow definitions module."""

from workflows.logistics_sync_workflow import LogisticsSyncWorkflow, LogisticsSyncInput, TASK_QUEUE

__all__ = ["LogisticsSyncWorkflow", "LogisticsSyncInput", "TASK_QUEUE"]
