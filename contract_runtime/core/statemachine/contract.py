# contract_runtime/core/statemachine/contract.py
"""
Behavioral contract model and loader.

A behavioral contract (<domain>-state-machine.yaml) governs the RPC triggers
of one resource:

    domain: tasks
    object: Task
    apiSpec: tasks-openapi.yaml
    states:
      pending: {slaClock: running}
      in_progress: {slaClock: running}
      completed: {slaClock: stopped}
    initialState: pending
    guards:
      assignedToIsNull: {field: assignedToId, operator: is_null}
    transitions:
      - trigger: claim
        from: pending
        to: in_progress
        actors: [caseworker]
        guards: [assignedToIsNull]
        effects:
          - {type: set, field: assignedToId, value: $caller.id}
    requestBodies:
      complete: {type: object, properties: {...}}
    onCreate:
      effects: [...]

Contracts are checked completely at load time: undefined states, undefined
guards and unknown effect types raise ContractDefinitionError. Unknown guard
operators are an error under the strict guard policy and a logged warning
under the lenient one.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..errors import ContractDefinitionError
from .effects import Effect, parse_effect
from .guards import GuardDefinition

logger = logging.getLogger("contract_runtime.statemachine.contract")

CONTRACT_SUFFIX = "-state-machine.yaml"


@dataclass
class StateDefinition:
    name: str
    sla_clock: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Transition:
    trigger: str
    from_state: str
    to_state: str
    actors: List[str] = field(default_factory=list)
    guards: List[str] = field(default_factory=list)
    effects: List[Effect] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trigger": self.trigger,
            "from": self.from_state,
            "to": self.to_state,
            "actors": self.actors,
            "guards": self.guards,
            "effects": [e.summary() for e in self.effects],
        }


@dataclass
class OnCreateDefinition:
    actors: List[str] = field(default_factory=list)
    effects: List[Effect] = field(default_factory=list)


@dataclass
class BehavioralContract:
    """States, guards, transitions and effects for one resource."""
    domain: str
    initial_state: str
    states: Dict[str, StateDefinition] = field(default_factory=dict)
    guards: Dict[str, GuardDefinition] = field(default_factory=dict)
    transitions: List[Transition] = field(default_factory=list)
    request_bodies: Dict[str, Any] = field(default_factory=dict)
    on_create: Optional[OnCreateDefinition] = None
    object_name: Optional[str] = None
    api_spec: Optional[str] = None
    source_path: Optional[Path] = None

    @property
    def triggers(self) -> List[str]:
        seen: List[str] = []
        for transition in self.transitions:
            if transition.trigger not in seen:
                seen.append(transition.trigger)
        return seen

    @property
    def terminal_states(self) -> List[str]:
        sources = {t.from_state for t in self.transitions}
        return [name for name in self.states if name not in sources]

    def transitions_for(self, trigger: str) -> List[Transition]:
        return [t for t in self.transitions if t.trigger == trigger]

    @property
    def resource_name(self) -> str:
        """Resource this contract governs: apiSpec file stem, else the domain."""
        if self.api_spec:
            stem = Path(self.api_spec).name
            for suffix in ("-openapi.yaml", "-openapi.yml"):
                if stem.endswith(suffix):
                    return stem[: -len(suffix)]
        return self.domain

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "object": self.object_name,
            "states": list(self.states),
            "initialState": self.initial_state,
            "terminalStates": self.terminal_states,
            "triggers": self.triggers,
            "transitions": [t.to_dict() for t in self.transitions],
        }

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any], guard_policy: str = "lenient",
                  source_path: Optional[Path] = None) -> "BehavioralContract":
        if not isinstance(data, dict):
            raise ContractDefinitionError("Contract must be a YAML mapping")
        where = f" ({source_path})" if source_path else ""

        states = {
            name: StateDefinition(
                name=name,
                sla_clock=(meta or {}).get("slaClock"),
                metadata=dict(meta or {}),
            )
            for name, meta in (data.get("states") or {}).items()
        }
        if not states:
            raise ContractDefinitionError(f"Contract declares no states{where}")

        initial_state = data.get("initialState")
        if initial_state not in states:
            raise ContractDefinitionError(f"Initial state '{initial_state}' is not a declared state{where}")

        guards = {
            name: GuardDefinition.from_dict(name, spec)
            for name, spec in (data.get("guards") or {}).items()
        }
        for guard in guards.values():
            if guard.is_known:
                continue
            if guard_policy == "strict":
                raise ContractDefinitionError(
                    f"Guard '{guard.name}' uses unknown operator '{guard.operator}'{where}"
                )
            logger.warning(f"Guard '{guard.name}' uses unknown operator '{guard.operator}'{where}")

        transitions = [
            cls._parse_transition(i, t, states, guards, where)
            for i, t in enumerate(data.get("transitions") or [])
        ]

        on_create = None
        if data.get("onCreate"):
            raw = data["onCreate"]
            on_create = OnCreateDefinition(
                actors=list(raw.get("actors") or []),
                effects=[parse_effect(e, guards) for e in raw.get("effects") or []],
            )

        return cls(
            domain=str(data.get("domain") or (source_path.name.replace(CONTRACT_SUFFIX, "") if source_path else "")),
            initial_state=initial_state,
            states=states,
            guards=guards,
            transitions=transitions,
            request_bodies=dict(data.get("requestBodies") or {}),
            on_create=on_create,
            object_name=data.get("object"),
            api_spec=data.get("apiSpec"),
            source_path=source_path,
        )

    @staticmethod
    def _parse_transition(index: int, data: Dict[str, Any], states: Dict[str, StateDefinition],
                          guards: Dict[str, GuardDefinition], where: str) -> Transition:
        if not isinstance(data, dict) or not data.get("trigger"):
            raise ContractDefinitionError(f"Transition {index} has no trigger{where}")
        trigger = data["trigger"]
        for key in ("from", "to"):
            if data.get(key) not in states:
                raise ContractDefinitionError(
                    f"Transition '{trigger}' {key} state '{data.get(key)}' is not declared{where}"
                )
        guard_names = list(data.get("guards") or [])
        for name in guard_names:
            if name not in guards:
                raise ContractDefinitionError(f"Transition '{trigger}' references undefined guard '{name}'{where}")
        return Transition(
            trigger=trigger,
            from_state=data["from"],
            to_state=data["to"],
            actors=list(data.get("actors") or []),
            guards=guard_names,
            effects=[parse_effect(e, guards) for e in data.get("effects") or []],
        )


def load_contract(path: Path, guard_policy: str = "lenient") -> BehavioralContract:
    """Read and check one <domain>-state-machine.yaml file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ContractDefinitionError(f"Cannot read contract {path}: {e}") from e
    try:
        contract = BehavioralContract.from_dict(data, guard_policy=guard_policy, source_path=Path(path))
    except ContractDefinitionError as e:
        if str(path) in e.message:
            raise
        raise ContractDefinitionError(f"{path}: {e.message}") from e
    logger.info(
        f"Loaded contract: {contract.domain} ({len(contract.states)} states, {len(contract.transitions)} transitions)"
    )
    return contract
