# contract_runtime/core/statemachine/context.py
"""
Evaluation context shared by guards and effects during one trigger call.

Value references understood by resolve_value():
    $caller.<field>     the invoking caller ({"id": ..., "role": ...})
    $request.<path>     the trigger request body
    $resource.<path>    the record being transitioned
    $now                timestamp of the call (same value for every effect)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..shared.paths import get_path
from ..shared.timestamps import utc_now_iso

CALLER_PREFIX = "$caller."
REQUEST_PREFIX = "$request."
RESOURCE_PREFIX = "$resource."
NOW = "$now"


@dataclass
class EvaluationContext:
    """Everything a guard or effect may read besides the record itself."""
    resource_name: str
    trigger: Optional[str] = None
    caller: Dict[str, Any] = field(default_factory=dict)
    request: Dict[str, Any] = field(default_factory=dict)
    registry: Any = None  # StoreRegistry, used by create/lookup/event effects
    contracts: Dict[str, Any] = field(default_factory=dict)
    guard_policy: str = "lenient"
    now: str = field(default_factory=utc_now_iso)


def resolve_value(value: Any, record: Dict[str, Any], context: EvaluationContext) -> Any:
    """Replace $-references (recursively inside dicts and lists) with their values."""
    if isinstance(value, dict):
        return {k: resolve_value(v, record, context) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, record, context) for v in value]
    if not isinstance(value, str) or not value.startswith("$"):
        return value

    if value == NOW:
        return context.now
    if value.startswith(CALLER_PREFIX):
        return get_path(context.caller, value[len(CALLER_PREFIX):])
    if value.startswith(REQUEST_PREFIX):
        return get_path(context.request, value[len(REQUEST_PREFIX):])
    if value.startswith(RESOURCE_PREFIX):
        return get_path(record, value[len(RESOURCE_PREFIX):])
    return value
