# contract_runtime/api/__init__.py
from .route_generator import RegisteredRoute, register_routes
from .system import router as system_router

__all__ = ["RegisteredRoute", "register_routes", "system_router"]
