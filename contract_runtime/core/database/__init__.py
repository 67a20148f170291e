# contract_runtime/core/database/__init__.py
from .base import Base
from .models import ResourceRecord

__all__ = ["Base", "ResourceRecord"]
