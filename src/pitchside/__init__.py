"""Pitchside task ownership and handover engine."""

from pitchside.models.handover import (
    HandoverRequest,
    HandoverResult,
    HandoverScope,
    HandoverTarget,
)
from pitchside.models.task import Task, TaskFilter
from pitchside.service import UNCHANGED, OpsTaskService

__version__ = "0.1.0"

__all__ = [
    "HandoverRequest",
    "HandoverResult",
    "HandoverScope",
    "HandoverTarget",
    "OpsTaskService",
    "Task",
    "TaskFilter",
    "UNCHANGED",
]
