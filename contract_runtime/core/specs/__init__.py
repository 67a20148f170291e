# contract_runtime/core/specs/__init__.py
from .definitions import Endpoint, PaginationDefaults, RawSpecRef, ResourceSpecification
from .loader import SpecificationLoader
from .resolver import SchemaResolver, resolve_schema

__all__ = [
    "Endpoint",
    "PaginationDefaults",
    "RawSpecRef",
    "ResourceSpecification",
    "SchemaResolver",
    "SpecificationLoader",
    "resolve_schema",
]
