"""Tests for OpsTaskService: proves the facade orchestrates correctly."""

import json
import pytest
from pathlib import Path

from pitchside.directory.roster import PersonEntry, PersonRoster
from pitchside.errors import InvalidRequest, NotFound
from pitchside.models.handover import HandoverRequest
from pitchside.models.task import Task, TaskFilter
from pitchside.ownership.resolver import OwnershipKind
from pitchside.persistence.audit_log import AuditEvent, AuditEventType, AuditLog
from pitchside.persistence.task_store import TaskStore
from pitchside.policy.resolver import EnginePolicy
from pitchside.service import UNCHANGED, OpsTaskService

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _policy(**reassignment) -> EnginePolicy:
    raw = json.loads((CONFIG_DIR / "engine_policy.json").read_text(encoding="utf-8"))
    raw["reassignment"].update(reassignment)
    return EnginePolicy(raw)


@pytest.fixture
def roster() -> PersonRoster:
    r = PersonRoster()
    r.register(PersonEntry("alice", "club-1", roles={"Coach"}))
    r.register(PersonEntry("carol", "club-1", roles={"Kit"}))
    r.register(PersonEntry("dave", "club-1", roles={"Kit"}))
    return r


def _build(roster: PersonRoster, policy: EnginePolicy) -> OpsTaskService:
    svc = OpsTaskService(policy, roster)
    svc.store.add(Task(task_id="T-1", club_id="club-1", label="Line the pitch",
                       fixture_id="F1", owner_person_id="alice",
                       backup_person_id="dave"))
    svc.store.add(Task(task_id="T-2", club_id="club-1", label="Wash kit",
                       fixture_id="F1", owner_role="Kit"))
    svc.store.add(Task(task_id="T-3", club_id="club-1", label="Order balls",
                       fixture_id="F2"))
    return svc


@pytest.fixture
def service(roster: PersonRoster) -> OpsTaskService:
    return _build(roster, EnginePolicy.from_config_dir(CONFIG_DIR))


# =====================================================================
# Queries
# =====================================================================


class TestQueries:
    def test_list_and_get(self, service: OpsTaskService) -> None:
        tasks = service.list_tasks(TaskFilter(club_id="club-1", fixture_id="F1"))
        assert [t.task_id for t in tasks] == ["T-1", "T-2"]
        assert service.get_task("T-3").label == "Order balls"

    def test_get_missing(self, service: OpsTaskService) -> None:
        with pytest.raises(NotFound):
            service.get_task("T-404")

    def test_effective_owner(self, service: OpsTaskService) -> None:
        assert service.effective_owner("T-1").person_id == "alice"
        assert service.effective_owner("T-2").kind == OwnershipKind.ROLE_CLAIMABLE
        assert service.effective_owner("T-3").kind == OwnershipKind.UNASSIGNED

    def test_task_stats(self, service: OpsTaskService) -> None:
        service.toggle_completion("T-1", True, "alice")
        assert service.task_stats("club-1") == {
            "total": 3,
            "pending": 2,
            "completed": 1,
            "explicit_owner": 0,
            "role_claimable": 1,
            "unassigned": 1,
        }

    def test_stats_for_empty_club(self, service: OpsTaskService) -> None:
        assert service.task_stats("club-9")["total"] == 0


# =====================================================================
# Claims through the facade
# =====================================================================


class TestClaims:
    def test_claim_then_unassign(self, service: OpsTaskService) -> None:
        assert service.claim_task("T-2", "carol").owner_person_id == "carol"
        assert service.unassign_task("T-2", "admin").owner_person_id is None
        types = [e.event_type for e in service.list_audit_events(task_id="T-2")]
        assert types == [AuditEventType.TASK_CLAIMED, AuditEventType.TASK_REASSIGNED]

    def test_claim_after_external_append_is_audited(self, service: OpsTaskService) -> None:
        service.audit_log.append(AuditEvent.create(
            "AUD-00000001", "club-1", "sync", AuditEventType.FIXTURE_CREATED, {},
            fixture_id="F1",
        ))
        service.claim_task("T-2", "carol")
        events = service.list_audit_events(task_id="T-2")
        assert [e.event_type for e in events] == [AuditEventType.TASK_CLAIMED]
        assert events[0].event_id == "AUD-00000002"


# =====================================================================
# Direct reassignment
# =====================================================================


class TestReassign:
    def test_keep_policy_keeps_backup(self, service: OpsTaskService) -> None:
        task = service.reassign_task("T-1", "bob", "admin")
        assert task.owner_person_id == "bob"
        assert task.backup_person_id == "dave"

        event = service.audit_log.last_event
        assert event.event_type == AuditEventType.TASK_REASSIGNED
        assert event.payload == {
            "task_label": "Line the pitch",
            "from": "alice",
            "to": "bob",
            "backup_from": "dave",
            "backup_to": "dave",
        }

    def test_clear_policy_clears_backup(self, roster: PersonRoster) -> None:
        service = _build(roster, _policy(backup_on_owner_change="clear"))
        task = service.reassign_task("T-1", "bob", "admin")
        assert task.backup_person_id is None

    def test_backup_promoted_to_owner_is_cleared(self, service: OpsTaskService) -> None:
        task = service.reassign_task("T-1", "dave", "admin")
        assert task.owner_person_id == "dave"
        assert task.backup_person_id is None

    def test_explicit_backup(self, service: OpsTaskService) -> None:
        task = service.reassign_task("T-1", "alice", "admin", backup_id="carol")
        assert task.owner_person_id == "alice"
        assert task.backup_person_id == "carol"

    def test_explicit_backup_equal_to_owner_rejected(self, service: OpsTaskService) -> None:
        with pytest.raises(InvalidRequest):
            service.reassign_task("T-1", "bob", "admin", backup_id="bob")
        assert service.get_task("T-1").owner_person_id == "alice"

    def test_clear_owner(self, service: OpsTaskService) -> None:
        task = service.reassign_task("T-1", None, "admin")
        assert task.owner_person_id is None

    def test_no_change_records_nothing(self, service: OpsTaskService) -> None:
        service.reassign_task("T-1", "alice", "admin", backup_id=UNCHANGED)
        assert service.audit_log.count == 0

    def test_actor_required(self, service: OpsTaskService) -> None:
        with pytest.raises(InvalidRequest):
            service.reassign_task("T-1", "bob", " ")


# =====================================================================
# Completion
# =====================================================================


class TestToggleCompletion:
    def test_complete_and_reopen(self, service: OpsTaskService) -> None:
        done = service.toggle_completion("T-1", True, "alice")
        assert done.is_completed
        assert done.completed_by == "alice"
        assert done.completed_at is not None

        reopened = service.toggle_completion("T-1", False, "bob")
        assert not reopened.is_completed
        assert reopened.completed_by is None

        events = service.list_audit_events(task_id="T-1")
        assert [e.event_type for e in events] == [
            AuditEventType.TASK_COMPLETED, AuditEventType.TASK_REOPENED,
        ]
        assert [e.actor_id for e in events] == ["alice", "bob"]

    def test_same_state_is_noop(self, service: OpsTaskService) -> None:
        service.toggle_completion("T-1", False, "alice")
        assert service.audit_log.count == 0


# =====================================================================
# Handover through the facade
# =====================================================================


class TestHandover:
    def test_preview_then_execute(self, service: OpsTaskService) -> None:
        request = HandoverRequest.from_mapping({
            "clubId": "club-1", "fromUserId": "alice", "scope": "all",
            "target": "backup",
        })
        assert service.preview_handover(request).tasks_affected == 1
        result = service.execute_handover("admin", request)
        assert result.success
        assert service.get_task("T-1").owner_person_id == "dave"
        assert service.list_handover_candidates("club-1") == ["dave"]


# =====================================================================
# Audit history
# =====================================================================


class TestAuditHistory:
    def test_exactly_one_scope_required(self, service: OpsTaskService) -> None:
        with pytest.raises(InvalidRequest):
            service.list_audit_events()
        with pytest.raises(InvalidRequest):
            service.list_audit_events(fixture_id="F1", task_id="T-1")

    def test_list_by_fixture(self, service: OpsTaskService) -> None:
        service.toggle_completion("T-1", True, "alice")
        service.claim_task("T-2", "carol")
        service.toggle_completion("T-3", True, "alice")
        assert [e.task_id for e in service.list_audit_events(fixture_id="F1")] == [
            "T-1", "T-2",
        ]

    def test_query_paging_and_bounds(self, service: OpsTaskService) -> None:
        for _ in range(3):
            service.toggle_completion("T-3", True, "alice")
            service.toggle_completion("T-3", False, "alice")
        assert len(service.query_audit_events("club-1")) == 6
        page = service.query_audit_events("club-1", limit=2, offset=4)
        assert [e.event_type for e in page] == [
            AuditEventType.TASK_COMPLETED, AuditEventType.TASK_REOPENED,
        ]
        with pytest.raises(InvalidRequest):
            service.query_audit_events("club-1", limit=0)
        with pytest.raises(InvalidRequest):
            service.query_audit_events("club-1", offset=-1)

    def test_query_limit_is_capped(self, service: OpsTaskService) -> None:
        audit = service.audit_log
        for i in range(505):
            audit.record("club-1", "system", AuditEventType.FIXTURE_UPDATED, fixture_id=f"F{i}")
        assert len(service.query_audit_events("club-1")) == 50
        assert len(service.query_audit_events("club-1", limit=10_000)) == 500

    def test_user_activity_newest_first(self, service: OpsTaskService) -> None:
        service.toggle_completion("T-1", True, "alice")
        service.claim_task("T-2", "carol")
        service.toggle_completion("T-3", True, "alice")

        activity = service.user_activity("club-1", "alice")
        assert [e.task_id for e in activity] == ["T-3", "T-1"]
        assert len(service.user_activity("club-1", "alice", limit=1)) == 1


class TestPersistentService:
    def test_state_survives_restart(self, tmp_path: Path, roster: PersonRoster) -> None:
        policy = EnginePolicy.from_config_dir(CONFIG_DIR)
        tasks_path = tmp_path / "tasks.json"
        audit_path = tmp_path / "audit.jsonl"

        first = OpsTaskService(policy, roster, TaskStore(tasks_path), AuditLog(audit_path))
        first.store.add(Task(task_id="T-2", club_id="club-1", label="Wash kit",
                             owner_role="Kit"))
        first.claim_task("T-2", "carol")

        second = OpsTaskService(policy, roster, TaskStore(tasks_path), AuditLog(audit_path))
        assert second.get_task("T-2").owner_person_id == "carol"
        assert len(second.list_audit_events(task_id="T-2")) == 1
