# contract_runtime/core/statemachine/engine.py
"""
State Machine Engine - execute behavioral contract triggers.

A trigger call runs, in order:
    1. load the record                          404 NotFoundError
    2. validate the body against requestBodies   422 ValidationFailedError
    3. find the transition for the trigger       404 UnknownTriggerError
                                                 409 InvalidTransitionError
    4. evaluate guards in order, fail fast       409 GuardFailedError
    5. apply effects, set status = transition.to
    6. persist

Steps 3-6 run inside ResourceStore.update_with(), i.e. under the record's
lock, so concurrent calls on one record cannot race between the guard check
and the write. Any error in 3-5 aborts without writing.

Usage:
    engine = StateMachineEngine(registry, contracts, guard_policy="lenient")
    task = engine.fire(contract, registry.open("tasks"), task_id, "claim",
                       body={}, caller={"id": "worker-1", "role": "caseworker"})
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import GuardFailedError, InvalidTransitionError, NotFoundError, UnknownTriggerError, ValidationFailedError
from ..store import ResourceStore, StoreRegistry
from ..validation import SchemaValidator
from .context import EvaluationContext
from .contract import BehavioralContract, Transition
from .effects import Effect
from .guards import GuardDefinition, GuardEvaluation, evaluate_guards

logger = logging.getLogger("contract_runtime.statemachine.engine")

STATUS_FIELD = "status"


class StateMachineEngine:
    """Runs guards, effects and transitions for contract-governed resources."""

    def __init__(
        self,
        registry: StoreRegistry,
        contracts: Optional[Dict[str, BehavioralContract]] = None,
        guard_policy: str = "lenient",
        validator: Optional[SchemaValidator] = None,
    ):
        self.registry = registry
        self.contracts = contracts if contracts is not None else {}
        self.guard_policy = guard_policy
        self.validator = validator or SchemaValidator()

    def context(
        self,
        resource_name: str,
        trigger: Optional[str] = None,
        caller: Optional[Dict[str, Any]] = None,
        request: Optional[Dict[str, Any]] = None,
    ) -> EvaluationContext:
        return EvaluationContext(
            resource_name=resource_name,
            trigger=trigger,
            caller=caller or {},
            request=request or {},
            registry=self.registry,
            contracts=self.contracts,
            guard_policy=self.guard_policy,
        )

    # =========================================================================
    # Building blocks
    # =========================================================================

    @staticmethod
    def find_transition(contract: BehavioralContract, trigger: str, record: Dict[str, Any]) -> Transition:
        """The transition for trigger from the record's current status."""
        candidates = contract.transitions_for(trigger)
        if not candidates:
            raise UnknownTriggerError(trigger)
        status = record.get(STATUS_FIELD)
        for transition in candidates:
            if transition.from_state == status:
                return transition
        raise InvalidTransitionError(trigger, status)

    @staticmethod
    def evaluate_guards(
        names: List[str],
        guards: Dict[str, GuardDefinition],
        record: Dict[str, Any],
        context: EvaluationContext,
    ) -> GuardEvaluation:
        return evaluate_guards(names, guards, record, context)

    @staticmethod
    def apply_effects(effects: List[Effect], record: Dict[str, Any], context: EvaluationContext) -> Dict[str, Any]:
        for effect in effects:
            effect.apply(record, context)
        return record

    # =========================================================================
    # Operations
    # =========================================================================

    def fire(
        self,
        contract: BehavioralContract,
        store: ResourceStore,
        record_id: str,
        trigger: str,
        body: Optional[Dict[str, Any]] = None,
        caller: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run a trigger against a stored record and return the updated record."""
        if store.find_by_id(record_id) is None:
            raise NotFoundError(f"{store.name} record {record_id} not found")

        body = body or {}
        schema = contract.request_bodies.get(trigger)
        if schema:
            result = self.validator.validate(body, schema)
            if not result.valid:
                raise ValidationFailedError([e.to_dict() for e in result.errors])

        def transition_record(record: Dict[str, Any]) -> Dict[str, Any]:
            transition = self.find_transition(contract, trigger, record)
            context = self.context(store.name, trigger, caller, body)

            evaluation = evaluate_guards(transition.guards, contract.guards, record, context)
            if not evaluation.passed:
                logger.info(
                    f"Guard {evaluation.failed_guard} rejected {trigger} on {store.name}/{record_id}: "
                    f"{evaluation.reason}"
                )
                raise GuardFailedError(evaluation.failed_guard, evaluation.reason)

            self.apply_effects(transition.effects, record, context)
            record[STATUS_FIELD] = transition.to_state
            return record

        updated = store.update_with(record_id, transition_record)
        if updated is None:
            raise NotFoundError(f"{store.name} record {record_id} not found")

        logger.info(f"{store.name}/{record_id}: {trigger} -> {updated[STATUS_FIELD]}")
        return updated

    def prepare_create(
        self,
        contract: BehavioralContract,
        record: Dict[str, Any],
        resource_name: str,
        caller: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Put a new record in the initial state (client values are ignored) and run onCreate effects."""
        record[STATUS_FIELD] = contract.initial_state
        if contract.on_create and contract.on_create.effects:
            context = self.context(resource_name, "create", caller, dict(record))
            self.apply_effects(contract.on_create.effects, record, context)
        return record
