"""
Tests for StateMachineEngine: transitions, guards, effects and persistence.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import PERSON_JOHN, TASK_COMPLETED, TASK_IN_PROGRESS, TASK_PENDING
from contract_runtime.core.errors import (
    ConflictError,
    GuardFailedError,
    InvalidTransitionError,
    NotFoundError,
    UnknownTriggerError,
    ValidationFailedError,
)
from contract_runtime.core.statemachine import StateMachineEngine
from contract_runtime.core.statemachine.effects import EVENTS_RESOURCE

WORKER = {"id": "worker-7", "role": "caseworker"}
SUPERVISOR = {"id": "boss-1", "role": "supervisor"}


@pytest.fixture
def contract(runtime):
    return runtime.contracts["tasks"]


@pytest.fixture
def tasks(runtime):
    return runtime.registry.open("tasks")


def _fire(runtime, trigger, record_id, caller=WORKER, body=None):
    contract = runtime.contracts["tasks"]
    return runtime.engine.fire(contract, runtime.registry.open("tasks"), record_id, trigger,
                               body=body, caller=caller)


class TestFindTransition:
    def test_matching_transition(self, contract):
        transition = StateMachineEngine.find_transition(contract, "claim", {"status": "pending"})
        assert (transition.from_state, transition.to_state) == ("pending", "in_progress")

    def test_same_trigger_from_several_states(self, contract):
        from_pending = StateMachineEngine.find_transition(contract, "escalate", {"status": "pending"})
        from_progress = StateMachineEngine.find_transition(contract, "escalate", {"status": "in_progress"})
        assert from_pending is not from_progress
        assert from_pending.to_state == from_progress.to_state == "escalated"

    def test_unknown_trigger(self, contract):
        with pytest.raises(UnknownTriggerError) as exc_info:
            StateMachineEngine.find_transition(contract, "teleport", {"status": "pending"})
        assert exc_info.value.message == "Unknown trigger: teleport"

    def test_wrong_state(self, contract):
        with pytest.raises(InvalidTransitionError) as exc_info:
            StateMachineEngine.find_transition(contract, "complete", {"status": "pending"})
        assert exc_info.value.message == "Cannot complete: currently pending"
        assert exc_info.value.status_code == 409


class TestFire:
    def test_claim_sets_assignee_and_status(self, runtime, tasks):
        caller = {"id": PERSON_JOHN, "role": "caseworker"}

        task = _fire(runtime, "claim", TASK_PENDING, caller=caller)

        assert task["status"] == "in_progress"
        assert task["assignedToId"] == PERSON_JOHN
        assert task["claimedAt"].endswith("Z")
        assert task["assignee"]["firstName"] == "John"
        assert tasks.find_by_id(TASK_PENDING) == task

    def test_claim_records_event(self, runtime):
        _fire(runtime, "claim", TASK_PENDING)

        events = runtime.registry.open(EVENTS_RESOURCE).find_all().items
        assert [(e["name"], e["resourceId"], e["payload"]) for e in events] == [
            ("task.claimed", TASK_PENDING, {"assignedToId": "worker-7"}),
        ]

    def test_guard_failure_is_conflict_and_writes_nothing(self, runtime, tasks):
        before = tasks.update(TASK_PENDING, {"assignedToId": "someone-else"})

        with pytest.raises(GuardFailedError) as exc_info:
            _fire(runtime, "claim", TASK_PENDING)

        assert exc_info.value.failed_guard == "assignedToIsNull"
        assert exc_info.value.reason == "assignedToId is not null"
        assert exc_info.value.status_code == 409
        assert tasks.find_by_id(TASK_PENDING) == before
        assert runtime.registry.open(EVENTS_RESOURCE).count() == 0

    def test_wrong_state_and_unknown_trigger(self, runtime):
        with pytest.raises(InvalidTransitionError, match="Cannot claim: currently in_progress"):
            _fire(runtime, "claim", TASK_IN_PROGRESS)
        with pytest.raises(UnknownTriggerError, match="Unknown trigger: approve"):
            _fire(runtime, "approve", TASK_IN_PROGRESS)

    def test_unknown_record(self, runtime):
        with pytest.raises(NotFoundError):
            _fire(runtime, "claim", "missing")

    def test_request_body_validated_before_anything_runs(self, runtime, tasks):
        before = tasks.find_by_id(TASK_IN_PROGRESS)

        with pytest.raises(ValidationFailedError) as exc_info:
            _fire(runtime, "complete", TASK_IN_PROGRESS, body={"outcome": "maybe"})

        assert exc_info.value.details[0]["field"] == "outcome"
        assert tasks.find_by_id(TASK_IN_PROGRESS) == before

    def test_complete_runs_rules_and_event(self, runtime):
        denied = _fire(runtime, "complete", TASK_IN_PROGRESS, body={"outcome": "denied"})

        assert denied["status"] == "completed"
        assert denied["outcome"] == "denied"
        assert denied["followUpRequired"] is True
        event = runtime.registry.open(EVENTS_RESOURCE).find_all().items[0]
        assert event["payload"] == {"outcome": "denied", "assignedToId": "worker-7"}

    def test_complete_fallback_rule(self, runtime):
        approved = _fire(runtime, "complete", TASK_IN_PROGRESS, body={"outcome": "approved"})
        assert approved["followUpRequired"] is False

    def test_only_the_assignee_may_complete(self, runtime):
        with pytest.raises(GuardFailedError) as exc_info:
            _fire(runtime, "complete", TASK_IN_PROGRESS, caller={"id": "intruder"}, body={"outcome": "approved"})
        assert exc_info.value.failed_guard == "callerIsAssignee"

    def test_release_returns_to_pending(self, runtime):
        task = _fire(runtime, "release", TASK_IN_PROGRESS)
        assert task["status"] == "pending"
        assert task["assignedToId"] is None
        # claimable again
        assert _fire(runtime, "claim", TASK_IN_PROGRESS, caller={"id": "worker-9"})["assignedToId"] == "worker-9"

    def test_escalate_creates_follow_up_task(self, runtime, tasks):
        task = _fire(runtime, "escalate", TASK_PENDING, caller=SUPERVISOR)

        assert task["status"] == "escalated"
        follow_up = tasks.find_by_id(task["escalationTaskId"])
        assert follow_up["title"] == "Review escalated task"
        assert follow_up["parentTaskId"] == TASK_PENDING
        assert follow_up["status"] == "pending"
        assert follow_up["priority"] == "urgent"

    def test_caseworker_cannot_escalate(self, runtime):
        with pytest.raises(GuardFailedError) as exc_info:
            _fire(runtime, "escalate", TASK_PENDING, caller=WORKER)
        assert exc_info.value.failed_guard == "callerIsSupervisor"

    def test_terminal_state_has_no_way_out(self, runtime):
        with pytest.raises(InvalidTransitionError, match="currently completed"):
            _fire(runtime, "cancel", TASK_COMPLETED, caller=SUPERVISOR)

    def test_id_and_created_at_preserved(self, runtime, tasks):
        before = tasks.find_by_id(TASK_PENDING)
        after = _fire(runtime, "claim", TASK_PENDING)
        assert after["id"] == before["id"]
        assert after["createdAt"] == before["createdAt"]
        assert after["updatedAt"] != before["updatedAt"]

    def test_concurrent_claims_on_one_record_serialize(self, runtime, tasks):
        barrier = threading.Barrier(2)
        callers = [{"id": "worker-1", "role": "caseworker"}, {"id": "worker-2", "role": "caseworker"}]

        def claim(caller):
            barrier.wait()
            try:
                return _fire(runtime, "claim", TASK_PENDING, caller=caller)
            except ConflictError as e:
                return e

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(claim, callers))

        claimed = [o for o in outcomes if isinstance(o, dict)]
        rejected = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(claimed) == 1 and len(rejected) == 1
        assert tasks.find_by_id(TASK_PENDING)["assignedToId"] == claimed[0]["assignedToId"]
        assert runtime.registry.open(EVENTS_RESOURCE).count() == 1


class TestPrepareCreate:
    def test_forces_initial_state_and_runs_on_create(self, runtime, contract):
        record = runtime.engine.prepare_create(contract, {"title": "x", "status": "completed"}, "tasks", WORKER)
        assert record["status"] == "pending"
        assert record["priority"] == "normal"

    def test_keeps_explicit_priority(self, runtime, contract):
        record = runtime.engine.prepare_create(contract, {"title": "x", "priority": "high"}, "tasks", WORKER)
        assert record["priority"] == "high"
