"""Batch execution."""

from matchfacts.jobs.batch import BatchFailure, BatchOrchestrator, BatchResult

__all__ = ["BatchOrchestrator", "BatchResult", "BatchFailure"]
