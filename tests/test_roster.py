"""Tests for PersonRoster: role membership as seen by the engine."""

import json
import pytest
from pathlib import Path

from pitchside.directory.roster import PersonEntry, PersonRoster, PersonStatus


@pytest.fixture
def roster() -> PersonRoster:
    r = PersonRoster()
    r.register(PersonEntry("carol", "club-1", roles={"Kit"}, primary_role="Kit"))
    r.register(PersonEntry("dave", "club-1", roles={"Kit", "Coach"}))
    r.register(PersonEntry("erin", "club-2", roles={"Kit"}))
    return r


class TestRegistration:
    def test_blank_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="blank"):
            PersonRoster().register(PersonEntry("  ", "club-1"))

    def test_primary_role_must_be_held(self) -> None:
        with pytest.raises(ValueError, match="Primary role"):
            PersonRoster().register(
                PersonEntry("carol", "club-1", roles={"Kit"}, primary_role="Coach")
            )

    def test_id_is_stripped(self) -> None:
        r = PersonRoster()
        r.register(PersonEntry(" carol ", "club-1"))
        assert r.get("carol") is not None


class TestMembership:
    def test_members_of_is_club_scoped(self, roster: PersonRoster) -> None:
        assert roster.members_of("club-1", "Kit") == frozenset({"carol", "dave"})
        assert roster.members_of("club-2", "Kit") == frozenset({"erin"})

    def test_unknown_role_has_no_members(self, roster: PersonRoster) -> None:
        assert roster.members_of("club-1", "Finance") == frozenset()

    def test_unavailable_people_are_not_members(self, roster: PersonRoster) -> None:
        roster.set_status("dave", PersonStatus.UNAVAILABLE)
        assert roster.members_of("club-1", "Kit") == frozenset({"carol"})
        # Roles are retained while unavailable
        assert roster.roles_of("dave") == frozenset({"Kit", "Coach"})

    def test_roles_of_unknown_person(self, roster: PersonRoster) -> None:
        assert roster.roles_of("nobody") == frozenset()

    def test_set_status_unknown_person(self, roster: PersonRoster) -> None:
        with pytest.raises(ValueError):
            roster.set_status("nobody", PersonStatus.INACTIVE)


class TestFromFile:
    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "roster.json"
        path.write_text(json.dumps({"people": [
            {"person_id": "carol", "club_id": "club-1", "roles": ["Kit"],
             "primary_role": "Kit", "display_name": "Carol"},
            {"person_id": "dave", "club_id": "club-1", "roles": ["Kit"],
             "status": "inactive"},
        ]}), encoding="utf-8")

        roster = PersonRoster.from_file(path)
        assert len(roster.all_people()) == 2
        assert roster.get("carol").display_name == "Carol"
        assert roster.members_of("club-1", "Kit") == frozenset({"carol"})

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            PersonRoster.from_file(tmp_path / "nope.json")
