# contract_runtime/api/route_generator.py
"""
Route Generator - bind specification endpoints to generic handlers.

    GET    /things            list     200 {items, total, limit, offset, hasNext}
    GET    /things/{thingId}  get      200 record | 404
    POST   /things            create   201 + Location | 400 | 422
    PATCH  /things/{thingId}  update   200 record | 404 | 422
    DELETE /things/{thingId}  delete   204 | 404

Any other method/path combination in a specification is logged and skipped.
Resources with a behavioral contract also get

    POST   /things/{thingId}/{trigger}   RPC   200 record | 404 | 409 | 422

Usage:
    routes = register_routes(app, runtime)
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import APIRouter, FastAPI

from ..core.runtime import ContractRuntime
from ..core.specs import ResourceSpecification
from .handlers import HANDLER_FACTORIES, make_trigger_handler

logger = logging.getLogger("contract_runtime.api.routes")

# (method, is_item) -> operation
OPERATIONS = {
    ("get", False): "list",
    ("get", True): "get",
    ("post", False): "create",
    ("patch", True): "update",
    ("delete", True): "delete",
}

SUCCESS_STATUS = {"list": 200, "get": 200, "create": 201, "update": 200, "delete": 204, "trigger": 200}


@dataclass
class RegisteredRoute:
    resource: str
    operation: str
    method: str
    path: str
    operation_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.method:<6} {self.path} ({self.resource}.{self.operation})"


def register_routes(app: FastAPI, runtime: ContractRuntime) -> List[RegisteredRoute]:
    """Add one route per supported endpoint of every loaded specification."""
    router = APIRouter()
    registered: List[RegisteredRoute] = []

    for name in sorted(runtime.specifications):
        spec = runtime.specifications[name]
        registered.extend(_register_resource(router, runtime, spec))

    app.include_router(router)
    for route in registered:
        logger.info(f"Route: {route}")
    return registered


def _register_resource(router: APIRouter, runtime: ContractRuntime,
                       spec: ResourceSpecification) -> List[RegisteredRoute]:
    store = runtime.registry.open(spec)
    registered: List[RegisteredRoute] = []

    for endpoint in spec.endpoints:
        operation = OPERATIONS.get((endpoint.method, endpoint.is_item))
        if operation is None:
            logger.warning(
                f"Unsupported operation {endpoint.method.upper()} {endpoint.path} in {spec.name}; skipping"
            )
            continue

        handler = HANDLER_FACTORIES[operation](runtime, spec, endpoint, store)
        operation_id = endpoint.operation_id or f"{operation}_{spec.name}"
        router.add_api_route(
            endpoint.path,
            handler,
            methods=[endpoint.method.upper()],
            name=operation_id,
            operation_id=operation_id,
            summary=endpoint.summary,
            status_code=SUCCESS_STATUS[operation],
            tags=[spec.title],
        )
        registered.append(RegisteredRoute(spec.name, operation, endpoint.method.upper(), endpoint.path, operation_id))

    contract = runtime.contracts.get(spec.name)
    if contract is not None:
        item_path = spec.item_path
        id_param = next((e.id_param for e in spec.endpoints if e.is_item), None) or "id"
        trigger_path = f"{item_path}/{{trigger}}"
        operation_id = f"trigger_{spec.name}"
        router.add_api_route(
            trigger_path,
            make_trigger_handler(runtime, spec, id_param, store),
            methods=["POST"],
            name=operation_id,
            operation_id=operation_id,
            summary=f"Run a {contract.domain} trigger: {', '.join(contract.triggers)}",
            status_code=SUCCESS_STATUS["trigger"],
            tags=[spec.title],
        )
        registered.append(RegisteredRoute(spec.name, "trigger", "POST", trigger_path, operation_id))

    return registered
