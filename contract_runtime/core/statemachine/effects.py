# contract_runtime/core/statemachine/effects.py
"""
Transition effects.

Effects run in order after a transition's guards pass, mutating the record
before it is persisted with its new status. The set of effect types is
closed: every type is a class here, each must implement apply(), and a
contract naming any other type is rejected when it is loaded.

    set             {field, value}
    create          {entity, fields, field?}
    lookup          {entity, match, field, select?}
    evaluate-rules  {rules: [{order, condition, action, fallbackAction?}], fallbackAction?}
    event           {name, payload?}

Values may use $caller / $request / $resource / $now references.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Type, Union

from ..errors import ContractDefinitionError
from ..shared.paths import get_path, set_path
from .context import EvaluationContext, resolve_value
from .guards import GuardDefinition, evaluate_guard

logger = logging.getLogger("contract_runtime.statemachine.effects")

EVENTS_RESOURCE = "_events"


class Effect(ABC):
    """Base class for every effect type."""

    type: ClassVar[str]
    description: Optional[str]

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any], guards: Dict[str, GuardDefinition]) -> "Effect":
        ...

    @abstractmethod
    def apply(self, record: Dict[str, Any], context: EvaluationContext) -> None:
        """Mutate record in place."""

    def summary(self) -> str:
        return self.description or self.type


def _require(data: Dict[str, Any], *keys: str) -> None:
    missing = [k for k in keys if data.get(k) in (None, "")]
    if missing:
        raise ContractDefinitionError(
            f"Effect '{data.get('type')}' is missing: {', '.join(missing)}"
        )


@dataclass
class SetEffect(Effect):
    type: ClassVar[str] = "set"
    field: str
    value: Any = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data, guards):
        _require(data, "field")
        return cls(field=data["field"], value=data.get("value"), description=data.get("description"))

    def apply(self, record, context):
        set_path(record, self.field, resolve_value(self.value, record, context))


@dataclass
class CreateEffect(Effect):
    """Insert a record into another resource's store."""
    type: ClassVar[str] = "create"
    entity: str
    fields: Dict[str, Any] = field(default_factory=dict)
    field: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data, guards):
        _require(data, "entity")
        fields = data.get("fields") or {}
        if not isinstance(fields, dict):
            raise ContractDefinitionError("Effect 'create' fields must be a mapping")
        return cls(entity=data["entity"], fields=fields, field=data.get("field"),
                   description=data.get("description"))

    def apply(self, record, context):
        values = resolve_value(self.fields, record, context)
        contract = context.contracts.get(self.entity)
        if contract is not None and "status" not in values:
            values["status"] = contract.initial_state
        created = context.registry.open(self.entity).insert(values)
        logger.info(f"Created {self.entity}/{created['id']} from {context.resource_name}/{record.get('id')}")
        if self.field:
            set_path(record, self.field, created["id"])


@dataclass
class LookupEffect(Effect):
    """Copy a matching record (or one of its fields) from another resource."""
    type: ClassVar[str] = "lookup"
    entity: str
    match: Dict[str, Any]
    field: str
    select: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data, guards):
        _require(data, "entity", "match", "field")
        if not isinstance(data["match"], dict):
            raise ContractDefinitionError("Effect 'lookup' match must be a mapping")
        return cls(entity=data["entity"], match=data["match"], field=data["field"],
                   select=data.get("select"), description=data.get("description"))

    def apply(self, record, context):
        criteria = resolve_value(self.match, record, context)
        found = context.registry.open(self.entity).find_first(criteria)
        if found is not None and self.select:
            found = get_path(found, self.select)
        set_path(record, self.field, found)


@dataclass
class Rule:
    order: int
    condition: Union[GuardDefinition, bool]
    action: Effect
    fallback_action: Optional[Effect] = None
    description: Optional[str] = None

    def passes(self, record, context) -> bool:
        if isinstance(self.condition, bool):
            return self.condition
        return evaluate_guard(self.condition, record, context).passed


@dataclass
class EvaluateRulesEffect(Effect):
    """
    Apply the action of the first rule (by order) whose condition passes.

    When no rule passes, the effect's fallbackAction applies; failing that,
    the fallbackAction declared on the lowest-ordered rule that has one.
    """
    type: ClassVar[str] = "evaluate-rules"
    rules: List[Rule] = field(default_factory=list)
    fallback_action: Optional[Effect] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data, guards):
        rules_data = data.get("rules")
        if not isinstance(rules_data, list) or not rules_data:
            raise ContractDefinitionError("Effect 'evaluate-rules' needs a non-empty rules list")
        rules = [_parse_rule(i, r, guards) for i, r in enumerate(rules_data)]
        rules.sort(key=lambda r: r.order)
        fallback = data.get("fallbackAction")
        return cls(
            rules=rules,
            fallback_action=_parse_action(fallback, guards) if fallback else None,
            description=data.get("description"),
        )

    def apply(self, record, context):
        for rule in self.rules:
            if rule.passes(record, context):
                logger.debug(f"Rule {rule.order} matched for {context.resource_name}/{record.get('id')}")
                rule.action.apply(record, context)
                return
        fallback = self.fallback_action or next(
            (r.fallback_action for r in self.rules if r.fallback_action), None
        )
        if fallback is not None:
            fallback.apply(record, context)


@dataclass
class EventEffect(Effect):
    """Append an event to the _events store and log it."""
    type: ClassVar[str] = "event"
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data, guards):
        _require(data, "name")
        return cls(name=data["name"], payload=data.get("payload") or {}, description=data.get("description"))

    def apply(self, record, context):
        event = {
            "name": self.name,
            "resource": context.resource_name,
            "resourceId": record.get("id"),
            "trigger": context.trigger,
            "payload": resolve_value(self.payload, record, context),
            "occurredAt": context.now,
        }
        context.registry.open(EVENTS_RESOURCE).insert(event)
        logger.info(f"Event {self.name} for {context.resource_name}/{record.get('id')}")


EFFECT_TYPES: Dict[str, Type[Effect]] = {
    cls.type: cls
    for cls in (SetEffect, CreateEffect, LookupEffect, EvaluateRulesEffect, EventEffect)
}


def parse_effect(data: Dict[str, Any], guards: Optional[Dict[str, GuardDefinition]] = None) -> Effect:
    """Build the effect class named by data['type']; unknown types are rejected."""
    if not isinstance(data, dict):
        raise ContractDefinitionError(f"Effect must be a mapping, got {data!r}")
    effect_type = data.get("type")
    effect_cls = EFFECT_TYPES.get(effect_type)
    if effect_cls is None:
        raise ContractDefinitionError(
            f"Unknown effect type '{effect_type}' (expected one of: {', '.join(sorted(EFFECT_TYPES))})"
        )
    return effect_cls.from_dict(data, guards or {})


# =============================================================================
# Rule parsing
# =============================================================================


def _parse_action(data: Any, guards: Dict[str, GuardDefinition]) -> Effect:
    if not isinstance(data, dict):
        raise ContractDefinitionError(f"Rule action must be a mapping, got {data!r}")
    if "type" in data:
        return parse_effect(data, guards)
    return SetEffect.from_dict(data, guards)


def _parse_condition(data: Any, guards: Dict[str, GuardDefinition], index: int) -> Union[GuardDefinition, bool]:
    if isinstance(data, bool):
        return data
    if isinstance(data, str):
        if data in guards:
            return guards[data]
        raise ContractDefinitionError(f"Rule {index} references undefined guard '{data}'")
    if isinstance(data, dict):
        return GuardDefinition.from_dict(f"rule[{index}]", data)
    raise ContractDefinitionError(f"Rule {index} has an invalid condition: {data!r}")


def _parse_rule(index: int, data: Any, guards: Dict[str, GuardDefinition]) -> Rule:
    if not isinstance(data, dict) or "action" not in data:
        raise ContractDefinitionError(f"Rule {index} needs an action")
    fallback = data.get("fallbackAction")
    return Rule(
        order=int(data.get("order", index)),
        condition=_parse_condition(data.get("condition", True), guards, index),
        action=_parse_action(data["action"], guards),
        fallback_action=_parse_action(fallback, guards) if fallback else None,
        description=data.get("description"),
    )
