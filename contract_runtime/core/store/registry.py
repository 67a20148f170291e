# contract_runtime/core/store/registry.py
"""
StoreRegistry - owns every ResourceStore and their database engines.

One SQLite database per resource: <data_dir>/<name>.db. Without a data_dir
each resource gets a private in-memory database that lives as long as the
registry. Stores are created lazily on first open() and disposed together by
close_all().

Usage:
    registry = StoreRegistry(Path("data"))
    tasks = registry.open(specification)   # or registry.open("tasks")
    ...
    registry.close_all()
"""

import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from ..specs.definitions import ResourceSpecification
from .resource_store import ResourceStore

logger = logging.getLogger("contract_runtime.store.registry")

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


class StoreRegistry:
    """Lifecycle owner for per-resource stores."""

    def __init__(self, data_dir: Optional[Path] = None, echo: bool = False):
        self.data_dir = Path(data_dir) if data_dir else None
        self._echo = echo
        self._stores: Dict[str, ResourceStore] = {}
        self._lock = threading.Lock()

    def open(self, resource: Union[ResourceSpecification, str]) -> ResourceStore:
        """Return the store for a resource, creating its database on first use."""
        name = resource.name if isinstance(resource, ResourceSpecification) else resource
        with self._lock:
            store = self._stores.get(name)
            if store is None:
                store = ResourceStore(name, self._create_engine(name), serialize_sessions=self.data_dir is None)
                self._stores[name] = store
                logger.debug(f"Opened store {store!r}")
            return store

    @property
    def names(self) -> List[str]:
        return sorted(self._stores)

    def clear_all(self) -> Dict[str, int]:
        """Empty every open store; returns name -> number of records removed."""
        return {name: store.clear() for name, store in list(self._stores.items())}

    def health_check(self) -> Dict[str, Any]:
        """Check that every open database answers a trivial query."""
        stores: Dict[str, Any] = {}
        healthy = True
        for name, store in list(self._stores.items()):
            try:
                with store.get_session() as session:
                    session.execute(text("SELECT 1"))
                stores[name] = {"status": "healthy", "records": store.count()}
            except Exception as e:
                healthy = False
                logger.error(f"Store health check failed for {name}: {e}")
                stores[name] = {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy" if healthy else "unhealthy", "stores": stores}

    def close_all(self) -> None:
        with self._lock:
            for store in self._stores.values():
                store.close()
            closed = len(self._stores)
            self._stores.clear()
        logger.info(f"Closed {closed} stores")

    def _create_engine(self, name: str):
        if self.data_dir is None:
            return create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=self._echo,
            )
        self.data_dir.mkdir(parents=True, exist_ok=True)
        db_path = self.data_dir / f"{_SAFE_NAME.sub('_', name)}.db"
        return create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
            echo=self._echo,
        )

    def __repr__(self) -> str:
        location = str(self.data_dir) if self.data_dir else ":memory:"
        return f"<StoreRegistry(data_dir={location}, stores={self.names})>"
