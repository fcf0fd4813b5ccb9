"""Directory collaborator: role membership lookups."""

from pitchside.directory.roster import (
    PersonEntry,
    PersonRoster,
    PersonStatus,
    RoleDirectory,
)

__all__ = ["PersonEntry", "PersonRoster", "PersonStatus", "RoleDirectory"]
