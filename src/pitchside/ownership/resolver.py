"""Ownership resolver: classifies who effectively owns a task.

Three outcomes, exactly one per task:
- EXPLICIT_OWNER: owner_person_id is set.
- ROLE_CLAIMABLE: no owner, but owner_role is set and somebody holds it.
- UNASSIGNED: anything else; must be explicitly assigned.

effective_owner() is pure: it takes the role's member set as an argument
instead of asking a directory, so display code, claims and handover all
share one definition of ownership and it can be tested without a live
directory. It does not know whether the caller holds the role; that is
the claim service's question.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import AbstractSet, Optional

from pitchside.directory.roster import RoleDirectory
from pitchside.models.task import Task


class OwnershipKind(str, enum.Enum):
    UNASSIGNED = "unassigned"
    EXPLICIT_OWNER = "explicit_owner"
    ROLE_CLAIMABLE = "role_claimable"


@dataclass(frozen=True)
class EffectiveOwner:
    """Resolved ownership state.

    person_id is set only for EXPLICIT_OWNER, role only for ROLE_CLAIMABLE.
    """
    kind: OwnershipKind
    person_id: Optional[str] = None
    role: Optional[str] = None

    @staticmethod
    def unassigned() -> EffectiveOwner:
        return EffectiveOwner(kind=OwnershipKind.UNASSIGNED)

    @staticmethod
    def explicit(person_id: str) -> EffectiveOwner:
        return EffectiveOwner(kind=OwnershipKind.EXPLICIT_OWNER, person_id=person_id)

    @staticmethod
    def role_claimable(role: str) -> EffectiveOwner:
        return EffectiveOwner(kind=OwnershipKind.ROLE_CLAIMABLE, role=role)


def effective_owner(task: Task, role_members: AbstractSet[str]) -> EffectiveOwner:
    """Classify a task's ownership.

    Args:
        task: The task to classify.
        role_members: People currently holding task.owner_role (ignored
            when the task has an explicit owner or no role).
    """
    if task.owner_person_id:
        return EffectiveOwner.explicit(task.owner_person_id)
    if task.owner_role and role_members:
        return EffectiveOwner.role_claimable(task.owner_role)
    return EffectiveOwner.unassigned()


class OwnershipResolver:
    """effective_owner() bound to a role directory.

    Usage:
        resolver = OwnershipResolver(roster)
        owner = resolver.resolve(task)
        if resolver.can_claim(task, "carol"):
            ...
    """

    def __init__(self, directory: RoleDirectory) -> None:
        self._directory = directory

    def role_members(self, task: Task) -> frozenset[str]:
        """Members of the task's fallback role, or empty if none applies."""
        if task.owner_person_id or not task.owner_role:
            return frozenset()
        return self._directory.members_of(task.club_id, task.owner_role)

    def resolve(self, task: Task) -> EffectiveOwner:
        return effective_owner(task, self.role_members(task))

    def can_claim(self, task: Task, person_id: str) -> bool:
        """Display helper: would claim(task, person_id) be accepted now?

        True for the current explicit owner (claim is idempotent) and for
        members of the role of a role-claimable task.
        """
        members = self.role_members(task)
        owner = effective_owner(task, members)
        if owner.kind == OwnershipKind.EXPLICIT_OWNER:
            return owner.person_id == person_id
        if owner.kind == OwnershipKind.ROLE_CLAIMABLE:
            return person_id in members
        return False
