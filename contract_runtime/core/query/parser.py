# contract_runtime/core/query/parser.py
"""
Search expression parser.

Turns the `q` query parameter into an ordered list of SearchConditions that
are ANDed together. Grammar (whitespace-separated tokens, quotes group text
containing spaces):

    token      := ['-'] ( field ':' value | term )
    field      := ident ('.' ident)*
    value      := comparator literal | wildcard | literal (',' literal)* | '*'
    comparator := '>' | '>=' | '<' | '<='
    wildcard   := '*'? literal '*'?

Examples:
    status:active               exact match
    income:>=1000               numeric comparison
    status:active,pending       one of
    name:*ohn*                  case-insensitive contains
    email:*                     field present
    -deletedAt:*                field absent
    -status:archived            negated exact match
    smith*                      full-text starts-with over every field

Anything outside the grammar raises QueryParseError; nothing is silently
ignored.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from ..errors import QueryParseError

_FIELD = re.compile(r"^[A-Za-z0-9_$][\w$-]*(\.[A-Za-z0-9_$][\w$-]*)*$")
_INT = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?(\d+\.\d*|\.\d+|\d+(\.\d*)?[eE][-+]?\d+)$")

# Checked longest first so ">=" is not read as ">"
_COMPARATORS = (">=", "<=", ">", "<")
_UNSUPPORTED_PREFIXES = ("=", "!", "~")


class SearchOperator(str, Enum):
    """Predicate operators produced by the parser."""
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    ONE_OF = "one_of"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


COMPARATOR_OPERATORS = {
    ">=": SearchOperator.GTE,
    "<=": SearchOperator.LTE,
    ">": SearchOperator.GT,
    "<": SearchOperator.LT,
}

WILDCARD_OPERATORS = {
    SearchOperator.CONTAINS,
    SearchOperator.STARTS_WITH,
    SearchOperator.ENDS_WITH,
}


@dataclass(frozen=True)
class SearchCondition:
    """
    One parsed predicate.

    field is a dot path, or None for a full-text term matched against every
    value in the record. raw keeps the literal text exactly as typed, which
    is what exact matches compare against.
    """
    field: Optional[str]
    operator: SearchOperator
    value: Any = None
    negate: bool = False
    raw: Union[str, Tuple[str, ...], None] = None

    def to_dict(self):
        return {
            "field": self.field,
            "operator": self.operator.value,
            "value": list(self.value) if isinstance(self.value, tuple) else self.value,
            "negate": self.negate,
        }


def parse_number(literal: str) -> Union[int, float, str]:
    """'1000' -> 1000, '2.5' -> 2.5, anything else is returned unchanged."""
    if _INT.match(literal):
        return int(literal)
    if _FLOAT.match(literal):
        return float(literal)
    return literal


def tokenize(raw: str) -> List[str]:
    """Split on whitespace, keeping quoted runs together and dropping the quotes."""
    tokens: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None
    in_token = False

    for ch in raw:
        if quote:
            if ch == quote:
                quote = None
            else:
                current.append(ch)
        elif ch in ("'", '"'):
            quote = ch
            in_token = True
        elif ch.isspace():
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        else:
            current.append(ch)
            in_token = True

    if quote:
        raise QueryParseError(f"Unterminated {quote} quote in search expression", raw)
    if in_token:
        tokens.append("".join(current))
    return tokens


def parse_query(raw: Optional[str]) -> List[SearchCondition]:
    """Parse a search expression into ANDed conditions. Empty input -> []."""
    if raw is None or not raw.strip():
        return []
    return [_parse_token(token) for token in tokenize(raw)]


# =============================================================================
# Token parsing
# =============================================================================


def _parse_token(token: str) -> SearchCondition:
    negate = token.startswith("-")
    body = token[1:] if negate else token
    if not body:
        raise QueryParseError("Negation must be followed by a condition", token)

    if ":" not in body:
        return _parse_term(body, negate, token)

    field, _, value = body.partition(":")
    if not field:
        raise QueryParseError("Missing field name before ':'", token)
    if not _FIELD.match(field):
        raise QueryParseError(f"Invalid field name '{field}'", token)
    if not value:
        raise QueryParseError(f"Missing value for field '{field}'", token)

    if value == "*":
        operator = SearchOperator.NOT_EXISTS if negate else SearchOperator.EXISTS
        return SearchCondition(field, operator, None, False, "*")

    if value.startswith(_UNSUPPORTED_PREFIXES):
        raise QueryParseError(f"Unsupported operator '{value[0]}' for field '{field}'", token)

    for comparator in _COMPARATORS:
        if value.startswith(comparator):
            literal = value[len(comparator):]
            if not literal:
                raise QueryParseError(f"Comparator '{comparator}' needs a value", token)
            if "," in literal or "*" in literal or literal.startswith(_COMPARATORS):
                raise QueryParseError(
                    f"Comparator '{comparator}' cannot be combined with lists or wildcards", token
                )
            return SearchCondition(
                field, COMPARATOR_OPERATORS[comparator], parse_number(literal), negate, literal
            )

    if "," in value:
        options = tuple(v for v in value.split(",") if v)
        if not options:
            raise QueryParseError(f"Missing value for field '{field}'", token)
        if any("*" in v for v in options):
            raise QueryParseError("Wildcards cannot be used inside a list of values", token)
        return SearchCondition(field, SearchOperator.ONE_OF, options, negate, options)

    if "*" in value:
        operator, literal = _parse_wildcard(value, token)
        return SearchCondition(field, operator, literal, negate, literal)

    return SearchCondition(field, SearchOperator.EQ, parse_number(value), negate, value)


def _parse_term(term: str, negate: bool, token: str) -> SearchCondition:
    if "*" in term:
        operator, literal = _parse_wildcard(term, token)
        return SearchCondition(None, operator, literal, negate, literal)
    return SearchCondition(None, SearchOperator.EQ, term, negate, term)


def _parse_wildcard(value: str, token: str) -> Tuple[SearchOperator, str]:
    leading = value.startswith("*")
    trailing = value.endswith("*") and len(value) > 1
    literal = value[1 if leading else 0: -1 if trailing else None]

    if not literal:
        raise QueryParseError("Wildcard needs some text to match", token)
    if "*" in literal:
        raise QueryParseError("Wildcards are only allowed at the start or end of a value", token)

    if leading and trailing:
        return SearchOperator.CONTAINS, literal
    if trailing:
        return SearchOperator.STARTS_WITH, literal
    return SearchOperator.ENDS_WITH, literal
