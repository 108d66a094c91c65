"""Service layer."""
from cyclecoach.services.completion_verifier import CompletionVerifier
from cyclecoach.services.generation_metrics import GenerationMetricsService
from cyclecoach.services.generation_queue import GenerationQueueManager, JobSnapshot
from cyclecoach.services.timeline import TimelineService

__all__ = [
    "CompletionVerifier",
    "GenerationMetricsService",
    "GenerationQueueManager",
    "JobSnapshot",
    "TimelineService",
]
