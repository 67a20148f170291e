# contract_runtime/core/store/__init__.py
from .registry import StoreRegistry
from .resource_store import SERVER_FIELDS, FindResult, ResourceStore

__all__ = ["FindResult", "ResourceStore", "SERVER_FIELDS", "StoreRegistry"]
