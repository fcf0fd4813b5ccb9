"""Person/role directory: the collaborator that knows who holds which role.

The engine only ever reads from the directory through the RoleDirectory
protocol. PersonRoster is the in-memory implementation used by tests, the
CLI and single-node deployments; a hosted deployment would back the same
two calls with its user table.

Role names are opaque strings ("Coach", "Kit", "Finance"); the engine
matches them exactly and attaches no meaning to them.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol


class RoleDirectory(Protocol):
    """Read-only view of role membership."""

    def members_of(self, club_id: str, role: str) -> frozenset[str]:
        """People in the club currently holding the role."""
        ...

    def roles_of(self, person_id: str) -> frozenset[str]:
        """Roles the person holds."""
        ...


class PersonStatus(str, enum.Enum):
    """Availability of a club member."""
    ACTIVE = "active"
    UNAVAILABLE = "unavailable"
    INACTIVE = "inactive"


@dataclass
class PersonEntry:
    """A single club member and their role memberships."""
    person_id: str
    club_id: str
    roles: set[str] = field(default_factory=set)
    primary_role: Optional[str] = None
    display_name: str = ""
    status: PersonStatus = PersonStatus.ACTIVE

    def is_available(self) -> bool:
        return self.status == PersonStatus.ACTIVE


class PersonRoster:
    """In-memory RoleDirectory.

    Unavailable and inactive members keep their roles but are left out
    of members_of(), so they never count as someone who could claim.

    Thread-safety: this class is not thread-safe. Registration is
    expected to happen before the engine starts serving requests.
    """

    def __init__(self) -> None:
        self._people: dict[str, PersonEntry] = {}

    @classmethod
    def from_file(cls, path: Path) -> PersonRoster:
        """Load a roster from a JSON list of people."""
        if not path.exists():
            raise FileNotFoundError(f"Roster file not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        roster = cls()
        for item in data.get("people", []):
            roster.register(PersonEntry(
                person_id=item["person_id"],
                club_id=item["club_id"],
                roles=set(item.get("roles", [])),
                primary_role=item.get("primary_role"),
                display_name=item.get("display_name", ""),
                status=PersonStatus(item.get("status", "active")),
            ))
        return roster

    def register(self, entry: PersonEntry) -> None:
        """Register or replace a person.

        Raises ValueError if the ID is blank or the primary role is not
        one of the person's roles.
        """
        canonical_id = entry.person_id.strip()
        if not canonical_id:
            raise ValueError("Cannot register person with blank ID")
        if entry.primary_role is not None and entry.primary_role not in entry.roles:
            raise ValueError(
                f"Primary role {entry.primary_role!r} is not held by {canonical_id}"
            )
        entry.person_id = canonical_id
        self._people[canonical_id] = entry

    def get(self, person_id: str) -> Optional[PersonEntry]:
        return self._people.get(person_id.strip())

    def set_status(self, person_id: str, status: PersonStatus) -> None:
        entry = self.get(person_id)
        if entry is None:
            raise ValueError(f"Person not found: {person_id}")
        entry.status = status

    def all_people(self) -> list[PersonEntry]:
        return list(self._people.values())

    # RoleDirectory

    def members_of(self, club_id: str, role: str) -> frozenset[str]:
        return frozenset(
            p.person_id for p in self._people.values()
            if p.club_id == club_id and role in p.roles and p.is_available()
        )

    def roles_of(self, person_id: str) -> frozenset[str]:
        entry = self.get(person_id)
        return frozenset(entry.roles) if entry else frozenset()
