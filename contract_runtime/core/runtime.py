# contract_runtime/core/runtime.py
"""
ContractRuntime - wires specifications, contracts, stores and the engine.

Everything the API layer needs is reachable from one object that is built at
startup and passed explicitly to the route generator; there is no ambient
module-level state.

Usage:
    runtime = ContractRuntime.bootstrap(settings)
    runtime.specifications["tasks"]
    runtime.contracts.get("tasks")
    runtime.registry.open("tasks")
    runtime.close()
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..config import Settings
from .errors import ContractDefinitionError, SpecificationLoadError
from .shared.seeder import seed_all
from .specs import ResourceSpecification, SpecificationLoader
from .statemachine import BehavioralContract, StateMachineEngine, load_contract
from .store import StoreRegistry
from .validation import SchemaValidator

logger = logging.getLogger("contract_runtime.runtime")


class ContractRuntime:
    """Loaded contracts plus the services that execute them."""

    def __init__(
        self,
        settings: Settings,
        specifications: Dict[str, ResourceSpecification],
        contracts: Optional[Dict[str, BehavioralContract]] = None,
        registry: Optional[StoreRegistry] = None,
    ):
        self.settings = settings
        self.specifications = specifications
        self.contracts = contracts or {}
        self.registry = registry or StoreRegistry(settings.data_path, echo=settings.debug)
        self.validator = SchemaValidator()
        self.engine = StateMachineEngine(
            self.registry,
            self.contracts,
            guard_policy=settings.guard_operator_policy,
            validator=self.validator,
        )

    # =========================================================================
    # Startup
    # =========================================================================

    @classmethod
    def bootstrap(cls, settings: Settings) -> "ContractRuntime":
        """Load every specification and contract, open stores, seed."""
        loader = SpecificationLoader(policy=settings.schema_ref_policy)
        specifications = loader.load_all(settings.specs_paths)
        contracts = cls.load_contracts(specifications, settings.guard_operator_policy)
        problems = cls.request_schema_errors(specifications, contracts)
        if problems and settings.schema_ref_policy == "strict":
            raise SpecificationLoadError("Unusable request schemas: " + "; ".join(problems))
        for problem in problems:
            logger.warning(f"Unusable request schema: {problem}")

        runtime = cls(settings, specifications, contracts)
        for spec in specifications.values():
            runtime.registry.open(spec)

        if settings.reset_on_startup:
            runtime.registry.clear_all()
        if settings.seed_on_startup:
            seed_all(runtime.registry, specifications.values())

        logger.info(
            f"Runtime ready: {len(specifications)} APIs, {len(contracts)} behavioral contracts"
        )
        return runtime

    @staticmethod
    def load_contracts(
        specifications: Mapping[str, ResourceSpecification],
        guard_policy: str = "lenient",
    ) -> Dict[str, BehavioralContract]:
        contracts: Dict[str, BehavioralContract] = {}
        for name, spec in specifications.items():
            if spec.contract_path is None:
                continue
            contract = load_contract(spec.contract_path, guard_policy=guard_policy)
            if contract.api_spec and contract.resource_name != name:
                raise ContractDefinitionError(
                    f"{spec.contract_path}: apiSpec '{contract.api_spec}' does not match resource '{name}'"
                )
            contracts[name] = contract
        return contracts

    @staticmethod
    def request_schema_errors(
        specifications: Mapping[str, ResourceSpecification],
        contracts: Mapping[str, BehavioralContract],
    ) -> List[str]:
        """Request body schemas that jsonschema would reject, as readable messages."""
        problems: List[str] = []
        for name in sorted(specifications):
            for endpoint in specifications[name].endpoints:
                reason = SchemaValidator.check_schema(endpoint.request_schema)
                if reason:
                    problems.append(f"{name} {endpoint.method.upper()} {endpoint.path}: {reason}")
        for name in sorted(contracts):
            for trigger, schema in contracts[name].request_bodies.items():
                reason = SchemaValidator.check_schema(schema)
                if reason:
                    problems.append(f"{name} trigger {trigger}: {reason}")
        return problems

    # =========================================================================
    # Operations
    # =========================================================================

    def reset(self) -> Dict[str, int]:
        """Clear every store and re-import examples."""
        cleared = self.registry.clear_all()
        logger.info(f"Cleared stores: {cleared}")
        return seed_all(self.registry, self.specifications.values())

    def caller_from_headers(self, headers: Mapping[str, str]) -> Dict[str, Any]:
        """Caller context passed to guards and effects ($caller.id, $caller.role)."""
        caller: Dict[str, Any] = {}
        caller_id = headers.get(self.settings.caller_id_header)
        caller_role = headers.get(self.settings.caller_role_header)
        if caller_id:
            caller["id"] = caller_id
        if caller_role:
            caller["role"] = caller_role
        return caller

    def manifest(self) -> Dict[str, Any]:
        apis = []
        for name in sorted(self.specifications):
            entry = self.specifications[name].to_dict()
            contract = self.contracts.get(name)
            if contract is not None:
                entry["stateMachine"] = contract.to_dict()
            apis.append(entry)
        return {"apis": apis}

    def close(self) -> None:
        self.registry.close_all()

    def __repr__(self) -> str:
        return f"<ContractRuntime(apis={sorted(self.specifications)}, contracts={sorted(self.contracts)})>"
