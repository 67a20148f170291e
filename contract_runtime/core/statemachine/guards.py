# contract_runtime/core/statemachine/guards.py
"""
Guard definitions and evaluation.

A guard is a precondition on the record (and caller) checked before a
transition is allowed:

    assignedToIsNull:
      field: assignedToId
      operator: is_null

    callerIsAssignee:
      field: assignedToId
      operator: equals
      value: $caller.id

Guards run in list order and evaluation stops at the first failure, whose
name and reason are returned to the client.

Unknown operators follow the guard policy: "lenient" lets the guard pass and
logs a warning, "strict" fails the guard.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from ..errors import ContractDefinitionError
from ..shared.paths import get_path
from .context import EvaluationContext, resolve_value

logger = logging.getLogger("contract_runtime.statemachine.guards")


class GuardOperator(str, Enum):
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"


KNOWN_OPERATORS = {o.value for o in GuardOperator}


@dataclass
class GuardDefinition:
    """{field, operator, value}; operator kept as text so unknown ones survive loading."""
    name: str
    field: str
    operator: str
    value: Any = None

    @property
    def is_known(self) -> bool:
        return self.operator in KNOWN_OPERATORS

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "GuardDefinition":
        if not isinstance(data, dict) or not data.get("field") or not data.get("operator"):
            raise ContractDefinitionError(f"Guard '{name}' needs a field and an operator")
        return cls(name=name, field=str(data["field"]), operator=str(data["operator"]), value=data.get("value"))

    def to_dict(self) -> Dict[str, Any]:
        data = {"field": self.field, "operator": self.operator}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass
class GuardResult:
    passed: bool
    reason: Optional[str] = None


@dataclass
class GuardEvaluation:
    """Outcome of a guard list: the first failure, if any."""
    passed: bool
    failed_guard: Optional[str] = None
    reason: Optional[str] = None
    evaluated: list = field(default_factory=list)


def evaluate_guard(guard: GuardDefinition, record: Dict[str, Any], context: EvaluationContext) -> GuardResult:
    """Evaluate one guard against the record and caller context."""
    if guard.field.startswith("$"):
        actual = resolve_value(guard.field, record, context)
    else:
        actual = get_path(record, guard.field)
    expected = resolve_value(guard.value, record, context)

    operator = guard.operator
    if operator == GuardOperator.IS_NULL:
        return GuardResult(actual is None, None if actual is None else f"{guard.field} is not null")
    if operator == GuardOperator.IS_NOT_NULL:
        return GuardResult(actual is not None, None if actual is not None else f"{guard.field} is null")
    if operator == GuardOperator.EQUALS:
        passed = actual == expected
        return GuardResult(passed, None if passed else f"{guard.field} does not match expected value")
    if operator == GuardOperator.NOT_EQUALS:
        passed = actual != expected
        return GuardResult(passed, None if passed else f"{guard.field} must not equal {expected}")
    if operator == GuardOperator.IN:
        options = expected if isinstance(expected, (list, tuple)) else [expected]
        passed = actual in options
        return GuardResult(passed, None if passed else f"{guard.field} is not one of: {', '.join(map(str, options))}")

    if context.guard_policy == "strict":
        return GuardResult(False, f"Unknown guard operator: {operator}")
    logger.warning(f"Unknown guard operator '{operator}' in guard '{guard.name}'; passing")
    return GuardResult(True)


def evaluate_guards(
    names: Iterable[str],
    guards: Dict[str, GuardDefinition],
    record: Dict[str, Any],
    context: EvaluationContext,
) -> GuardEvaluation:
    """Evaluate named guards in order, stopping at the first failure."""
    evaluated = []
    for name in names:
        guard = guards.get(name)
        if guard is None:
            # Contracts are checked at load time; this only happens for hand-built contracts
            logger.warning(f"Guard '{name}' is not defined; skipping")
            continue
        result = evaluate_guard(guard, record, context)
        evaluated.append(name)
        if not result.passed:
            return GuardEvaluation(False, name, result.reason, evaluated)
    return GuardEvaluation(True, evaluated=evaluated)
