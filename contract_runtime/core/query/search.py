# contract_runtime/core/query/search.py
"""
Record matching and list-parameter handling for the query engine.

    conditions = parse_query("status:active income:>=1000")
    matches(record, conditions)

Matching rules:
- Exact matches are case-sensitive; wildcard forms are case-insensitive.
- Numbers compare numerically when both sides are numeric, otherwise the
  string forms compare lexicographically (ISO-8601 timestamps sort correctly).
- An array field matches eq / one_of / wildcards when any element matches.
- A negated condition passes when the field is absent.
- Evaluation stops at the first failing condition.
"""

import operator as op
import re
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..errors import MalformedRequestError
from ..shared.paths import get_path
from ..specs.definitions import PaginationDefaults
from .parser import SearchCondition, SearchOperator, parse_number, parse_query

_NUMERIC = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")

_COMPARE: Dict[SearchOperator, Callable[[Any, Any], bool]] = {
    SearchOperator.GT: op.gt,
    SearchOperator.GTE: op.ge,
    SearchOperator.LT: op.lt,
    SearchOperator.LTE: op.le,
}

# Query parameters that never act as field filters
RESERVED_PARAMS = {"q", "search", "limit", "offset", "page"}


# =============================================================================
# Matching
# =============================================================================


def matches(record: Dict[str, Any], conditions: Sequence[SearchCondition]) -> bool:
    """True when the record satisfies every condition."""
    for condition in conditions:
        if not evaluate(record, condition):
            return False
    return True


def evaluate(record: Dict[str, Any], condition: SearchCondition) -> bool:
    if condition.operator == SearchOperator.EXISTS:
        return get_path(record, condition.field) is not None
    if condition.operator == SearchOperator.NOT_EXISTS:
        return get_path(record, condition.field) is None

    if condition.field is None:
        result = _match_full_text(record, condition)
    else:
        result = _match_field(get_path(record, condition.field), condition)
    return result != condition.negate


def _match_field(actual: Any, condition: SearchCondition) -> bool:
    operator = condition.operator
    if operator == SearchOperator.EQ:
        return _literal_equals(actual, condition.raw)
    if operator == SearchOperator.ONE_OF:
        return any(_literal_equals(actual, literal) for literal in condition.value)
    if operator in _COMPARE:
        return _compare(actual, condition)
    return _wildcard(actual, condition)


def _match_full_text(record: Dict[str, Any], condition: SearchCondition) -> bool:
    for leaf in _leaves(record):
        if condition.operator == SearchOperator.EQ:
            if _literal_equals(leaf, condition.raw):
                return True
        elif _wildcard(leaf, condition):
            return True
    return False


def _leaves(value: Any) -> Iterator[Any]:
    """Every string/number inside a record."""
    if isinstance(value, dict):
        for child in value.values():
            yield from _leaves(child)
    elif isinstance(value, list):
        for child in value:
            yield from _leaves(child)
    elif isinstance(value, str):
        yield value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        yield value


def _literal_equals(actual: Any, literal: str) -> bool:
    if isinstance(actual, list):
        return any(_literal_equals(item, literal) for item in actual)
    if actual is None or isinstance(actual, dict):
        return False
    if isinstance(actual, bool):
        return literal == ("true" if actual else "false")
    if isinstance(actual, (int, float)):
        expected = parse_number(literal)
        return not isinstance(expected, str) and actual == expected
    return str(actual) == literal


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and _NUMERIC.match(value):
        return float(value)
    return None


def _compare(actual: Any, condition: SearchCondition) -> bool:
    if actual is None or isinstance(actual, (dict, list)):
        return False
    left = _as_number(actual)
    right = condition.value if not isinstance(condition.value, str) else None
    if left is None or right is None:
        left, right = str(actual), str(condition.raw)
    return _COMPARE[condition.operator](left, right)


def _wildcard(actual: Any, condition: SearchCondition) -> bool:
    if isinstance(actual, list):
        return any(_wildcard(item, condition) for item in actual)
    if actual is None or isinstance(actual, dict):
        return False
    text = str(actual).lower()
    needle = str(condition.value).lower()
    if condition.operator == SearchOperator.CONTAINS:
        return needle in text
    if condition.operator == SearchOperator.STARTS_WITH:
        return text.startswith(needle)
    if condition.operator == SearchOperator.ENDS_WITH:
        return text.endswith(needle)
    return False


# =============================================================================
# List parameters
# =============================================================================


def build_conditions(params: Mapping[str, Sequence[str]]) -> List[SearchCondition]:
    """
    Conditions for a list request.

    `search=<text>` is a case-insensitive contains over every field and is
    ANDed with `q`. Without `q`, any other non-reserved parameter is an exact
    filter (repeated parameters mean "any of").
    """
    conditions: List[SearchCondition] = []
    q_values = params.get("q") or []
    query = q_values[-1] if q_values else ""
    if query:
        conditions.extend(parse_query(query))

    search = (params.get("search") or [""])[-1]
    if search:
        conditions.append(SearchCondition(None, SearchOperator.CONTAINS, search, False, search))
    if query:
        return conditions

    for name, values in params.items():
        if name in RESERVED_PARAMS:
            continue
        values = [v for v in values if v != ""]
        if len(values) == 1:
            conditions.append(SearchCondition(name, SearchOperator.EQ, parse_number(values[0]), False, values[0]))
        elif values:
            conditions.append(SearchCondition(name, SearchOperator.ONE_OF, tuple(values), False, tuple(values)))
    return conditions


def parse_pagination(params: Mapping[str, Sequence[str]], defaults: PaginationDefaults) -> Tuple[int, int]:
    """
    (limit, offset) from query parameters.

    Non-integer values are a malformed request; out-of-range values are
    clamped to [1, limit_max] and >= 0.
    """
    limit = _int_param(params, "limit", defaults.limit_default)
    offset = _int_param(params, "offset", defaults.offset_default)
    return max(1, min(limit, defaults.limit_max)), max(0, offset)


def _int_param(params: Mapping[str, Sequence[str]], name: str, default: int) -> int:
    values = params.get(name) or []
    if not values or values[-1] == "":
        return default
    try:
        return int(values[-1])
    except ValueError:
        raise MalformedRequestError(
            f"Query parameter '{name}' must be an integer",
            [{"field": name, "message": "must be integer", "value": values[-1]}],
        )
