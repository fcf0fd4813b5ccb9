"""Domain values: tasks, mutation intents, handover commands."""

from pitchside.models.handover import (
    HandoverRequest,
    HandoverResult,
    HandoverScope,
    HandoverTarget,
)
from pitchside.models.task import (
    ClaimOwnership,
    HandoverReassignment,
    ReassignOwnership,
    ReleaseOwnership,
    SetCompletion,
    Task,
    TaskFilter,
    TaskMutation,
)

__all__ = [
    "ClaimOwnership",
    "HandoverReassignment",
    "HandoverRequest",
    "HandoverResult",
    "HandoverScope",
    "HandoverTarget",
    "ReassignOwnership",
    "ReleaseOwnership",
    "SetCompletion",
    "Task",
    "TaskFilter",
    "TaskMutation",
]
