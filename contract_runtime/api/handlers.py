# contract_runtime/api/handlers.py
"""
Generic request handlers.

Each factory returns an async FastAPI endpoint bound to one resource
specification. Handlers contain no resource-specific code: they read the path
and query parameters, validate, call the store (or the state machine engine)
and raise ContractRuntimeError subclasses, which the application's exception
handlers turn into status codes and ErrorResponse bodies.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from ..core.errors import MalformedRequestError, NotFoundError, ValidationFailedError
from ..core.query import build_conditions, parse_pagination
from ..core.runtime import ContractRuntime
from ..core.specs import Endpoint, ResourceSpecification
from ..core.statemachine import STATUS_FIELD
from ..core.store import SERVER_FIELDS, ResourceStore
from ..models import ListResponse

logger = logging.getLogger("contract_runtime.api.handlers")

Handler = Callable[[Request], Any]


# =============================================================================
# Request helpers
# =============================================================================


def _query_params(request: Request) -> Dict[str, List[str]]:
    return {key: request.query_params.getlist(key) for key in request.query_params.keys()}


def _not_object() -> MalformedRequestError:
    return MalformedRequestError(
        "Request body must be a JSON object",
        [{"field": "body", "message": "must be object"}],
    )


async def read_json_object(request: Request, optional: bool = False) -> Dict[str, Any]:
    """The request body as a dict; an empty body is {} when optional."""
    raw = await request.body()
    if optional and not raw.strip():
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise _not_object()
    if not isinstance(body, dict):
        raise _not_object()
    return body


def strip_server_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    """Drop id/createdAt/updatedAt: clients can never write them."""
    return {k: v for k, v in body.items() if k not in SERVER_FIELDS}


def resource_label(spec: ResourceSpecification, id_param) -> str:
    """'Task' for {taskId}, falling back to the singular resource name."""
    param = id_param or ""
    if param.endswith("Id") and len(param) > 2:
        return param[0].upper() + param[1:-2]
    return spec.display_name


def _validate(runtime: ContractRuntime, body: Dict[str, Any], schema, partial: bool = False) -> None:
    result = runtime.validator.validate(body, schema, partial=partial)
    if not result.valid:
        raise ValidationFailedError([e.to_dict() for e in result.errors])


def _location(runtime: ContractRuntime, request: Request, spec: ResourceSpecification, record_id: str) -> str:
    base = runtime.settings.public_base_url or str(request.base_url)
    return f"{base.rstrip('/')}{spec.collection_path}/{record_id}"


# =============================================================================
# CRUD handler factories
# =============================================================================


def make_list_handler(runtime: ContractRuntime, spec: ResourceSpecification,
                      endpoint: Endpoint, store: ResourceStore) -> Handler:
    async def list_records(request: Request) -> Response:
        params = _query_params(request)
        limit, offset = parse_pagination(params, spec.pagination)
        conditions = build_conditions(params)

        # Store access is blocking SQLite I/O; keep it off the event loop
        result = await asyncio.to_thread(store.find_all, conditions, limit=limit, offset=offset)
        envelope = ListResponse.page(result.items, result.total, limit, offset)
        return JSONResponse(envelope.model_dump())

    return list_records


def make_get_handler(runtime: ContractRuntime, spec: ResourceSpecification,
                     endpoint: Endpoint, store: ResourceStore) -> Handler:
    label = resource_label(spec, endpoint.id_param)

    async def get_record(request: Request) -> Response:
        record = await asyncio.to_thread(store.find_by_id, request.path_params[endpoint.id_param])
        if record is None:
            raise NotFoundError(f"{label} not found")
        return JSONResponse(record)

    return get_record


def make_create_handler(runtime: ContractRuntime, spec: ResourceSpecification,
                        endpoint: Endpoint, store: ResourceStore) -> Handler:
    contract = runtime.contracts.get(spec.name)

    async def create_record(request: Request) -> Response:
        body = strip_server_fields(await read_json_object(request))
        _validate(runtime, body, endpoint.request_schema)
        caller = runtime.caller_from_headers(request.headers)

        def _sync_create() -> Dict[str, Any]:
            if contract is not None:
                runtime.engine.prepare_create(contract, body, spec.name, caller)
            return store.insert(body)

        record = await asyncio.to_thread(_sync_create)
        logger.info(f"Created {spec.name}/{record['id']}")
        return JSONResponse(
            record,
            status_code=201,
            headers={"Location": _location(runtime, request, spec, record["id"])},
        )

    return create_record


def make_update_handler(runtime: ContractRuntime, spec: ResourceSpecification,
                        endpoint: Endpoint, store: ResourceStore) -> Handler:
    label = resource_label(spec, endpoint.id_param)
    create_endpoint = spec.find_endpoint("post", item=False)
    schema = endpoint.request_schema or (create_endpoint.request_schema if create_endpoint else None)
    governed = spec.name in runtime.contracts

    async def update_record(request: Request) -> Response:
        record_id = request.path_params[endpoint.id_param]
        if await asyncio.to_thread(store.find_by_id, record_id) is None:
            raise NotFoundError(f"{label} not found")

        body = strip_server_fields(await read_json_object(request))
        if governed and STATUS_FIELD in body:
            raise ValidationFailedError([{
                "field": STATUS_FIELD,
                "code": "READ_ONLY",
                "message": "is managed by the state machine; use a trigger endpoint",
            }])
        _validate(runtime, body, schema, partial=True)

        record = await asyncio.to_thread(store.update, record_id, body)
        if record is None:
            raise NotFoundError(f"{label} not found")
        return JSONResponse(record)

    return update_record


def make_delete_handler(runtime: ContractRuntime, spec: ResourceSpecification,
                        endpoint: Endpoint, store: ResourceStore) -> Handler:
    label = resource_label(spec, endpoint.id_param)

    async def delete_record(request: Request) -> Response:
        if not await asyncio.to_thread(store.remove, request.path_params[endpoint.id_param]):
            raise NotFoundError(f"{label} not found")
        return Response(status_code=204)

    return delete_record


# =============================================================================
# RPC handler factory
# =============================================================================


def make_trigger_handler(runtime: ContractRuntime, spec: ResourceSpecification,
                         id_param: str, store: ResourceStore) -> Handler:
    contract = runtime.contracts[spec.name]
    label = resource_label(spec, id_param)

    async def fire_trigger(request: Request) -> Response:
        record_id = request.path_params[id_param]
        trigger = request.path_params["trigger"]
        if await asyncio.to_thread(store.find_by_id, record_id) is None:
            raise NotFoundError(f"{label} not found")

        body = await read_json_object(request, optional=True)
        caller = runtime.caller_from_headers(request.headers)

        # Runs in a worker thread; concurrent calls on one record serialize on its lock
        record = await asyncio.to_thread(
            runtime.engine.fire, contract, store, record_id, trigger, body=body, caller=caller
        )
        return JSONResponse(record)

    return fire_trigger


HANDLER_FACTORIES = {
    "list": make_list_handler,
    "get": make_get_handler,
    "create": make_create_handler,
    "update": make_update_handler,
    "delete": make_delete_handler,
}
