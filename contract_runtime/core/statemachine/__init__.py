# contract_runtime/core/statemachine/__init__.py
from .context import EvaluationContext, resolve_value
from .contract import BehavioralContract, OnCreateDefinition, StateDefinition, Transition, load_contract
from .effects import (
    EFFECT_TYPES,
    CreateEffect,
    Effect,
    EvaluateRulesEffect,
    EventEffect,
    LookupEffect,
    SetEffect,
    parse_effect,
)
from .engine import STATUS_FIELD, StateMachineEngine
from .guards import GuardDefinition, GuardEvaluation, GuardOperator, evaluate_guard, evaluate_guards

__all__ = [
    "BehavioralContract",
    "CreateEffect",
    "EFFECT_TYPES",
    "Effect",
    "EvaluateRulesEffect",
    "EvaluationContext",
    "EventEffect",
    "GuardDefinition",
    "GuardEvaluation",
    "GuardOperator",
    "LookupEffect",
    "OnCreateDefinition",
    "STATUS_FIELD",
    "SetEffect",
    "StateDefinition",
    "StateMachineEngine",
    "Transition",
    "evaluate_guard",
    "evaluate_guards",
    "load_contract",
    "parse_effect",
    "resolve_value",
]
