# contract_runtime/core/query/__init__.py
from .parser import SearchCondition, SearchOperator, parse_query, tokenize
from .search import build_conditions, matches, parse_pagination

__all__ = [
    "SearchCondition",
    "SearchOperator",
    "build_conditions",
    "matches",
    "parse_pagination",
    "parse_query",
    "tokenize",
]
