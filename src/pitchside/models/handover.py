"""Handover command and result values.

A handover moves all matching pending tasks away from one person in a
single request. It is never persisted; the audit trail records each
per-task change it makes.

Scope (which tasks are considered):
- ALL: every pending task the person owns in the club.
- FIXTURE: restricted to one fixture (fixture_id required).
- PACK: restricted to one template pack (template_pack_id required).

Target (who takes them):
- PERSON: a named person (to_person_id required).
- ROLE: nobody explicitly; the task becomes claimable by the role
  (to_role required).
- BACKUP: each task's own backup person.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pitchside.errors import InvalidRequest


class HandoverScope(str, enum.Enum):
    ALL = "all"
    FIXTURE = "fixture"
    PACK = "pack"


class HandoverTarget(str, enum.Enum):
    PERSON = "person"
    ROLE = "role"
    BACKUP = "backup"


# The product API calls the person target "user"
_TARGET_ALIASES = {"user": HandoverTarget.PERSON}


@dataclass(frozen=True)
class HandoverRequest:
    """A bulk reassignment command.

    Field consistency (scope vs fixture/pack id, target vs person/role)
    is checked by HandoverEngine.validate() so that a malformed request
    is rejected before any resolution work.
    Identifiers are stripped of surrounding whitespace on construction.
    """
    club_id: str
    from_person_id: str
    scope: HandoverScope
    target: HandoverTarget
    fixture_id: Optional[str] = None
    template_pack_id: Optional[str] = None
    to_person_id: Optional[str] = None
    to_role: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("club_id", "from_person_id", "fixture_id",
                     "template_pack_id", "to_person_id", "to_role"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, value.strip())

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HandoverRequest:
        """Build a request from a loosely-typed mapping (JSON body, CLI).

        Accepts snake_case keys and the camelCase keys used by the
        dashboard (fromUserId, templatePackId, toUserId, ...).
        """
        def pick(*keys: str) -> Optional[str]:
            for key in keys:
                value = data.get(key)
                if value is not None:
                    return str(value)
            return None

        scope_raw = pick("scope")
        target_raw = pick("target")
        if scope_raw is None:
            raise InvalidRequest("Handover request missing scope")
        if target_raw is None:
            raise InvalidRequest("Handover request missing target")
        try:
            scope = HandoverScope(scope_raw)
        except ValueError:
            raise InvalidRequest(f"Unknown handover scope: {scope_raw}") from None
        try:
            target = _TARGET_ALIASES.get(target_raw) or HandoverTarget(target_raw)
        except ValueError:
            raise InvalidRequest(f"Unknown handover target: {target_raw}") from None

        return cls(
            club_id=pick("club_id", "clubId") or "",
            from_person_id=pick(
                "from_person_id", "fromPersonId", "fromUserId",
            ) or "",
            scope=scope,
            target=target,
            fixture_id=pick("fixture_id", "fixtureId"),
            template_pack_id=pick("template_pack_id", "templatePackId"),
            to_person_id=pick("to_person_id", "toPersonId", "toUserId"),
            to_role=pick("to_role", "toRole"),
        )

    def scope_payload(self) -> dict[str, Any]:
        """Scope description recorded in audit payloads."""
        payload: dict[str, Any] = {"scope": self.scope.value}
        if self.scope == HandoverScope.FIXTURE:
            payload["fixture_id"] = self.fixture_id
        elif self.scope == HandoverScope.PACK:
            payload["template_pack_id"] = self.template_pack_id
        return payload


@dataclass(frozen=True)
class HandoverResult:
    """Outcome of a handover preview or execution.

    tasks_affected counts tasks that would be (preview) or were (execute)
    reassigned. errors lists per-task failures in human-readable form;
    success is True exactly when errors is empty.
    """
    success: bool
    tasks_affected: int
    errors: list[str] = field(default_factory=list)
    task_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "tasks_affected": self.tasks_affected,
            "errors": list(self.errors),
            "task_ids": list(self.task_ids),
        }
