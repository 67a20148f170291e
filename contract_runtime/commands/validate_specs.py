#!/usr/bin/env python3
# contract_runtime/commands/validate_specs.py
"""
Specification validation command.

Discovers every <resource>-openapi.yaml file, dereferences it, loads its
behavioral contract (if any), checks request body schemas and reports the
endpoints and triggers that would be served. Exits non-zero when anything fails to load.

Usage:
    python -m contract_runtime.commands.validate_specs --specs specs
    python -m contract_runtime.commands.validate_specs --specs specs --lenient
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional, Tuple

from ..core.errors import ContractRuntimeError
from ..core.runtime import ContractRuntime
from ..core.shared.seeder import load_examples, select_seed_records
from ..core.specs import ResourceSpecification, SpecificationLoader
from ..core.statemachine import BehavioralContract
from . import LOG_FORMAT, add_runtime_arguments, settings_from_args

logger = logging.getLogger("contract_runtime.validate_specs")


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BOLD = '\033[1m'
    END = '\033[0m'


def print_success(message: str) -> None:
    print(f"{Colors.GREEN}✓{Colors.END} {message}")


def print_error(message: str) -> None:
    print(f"{Colors.RED}✗{Colors.END} {message}")


def print_warning(message: str) -> None:
    print(f"{Colors.YELLOW}⚠{Colors.END} {message}")


def print_section(title: str) -> None:
    print(f"\n{Colors.BOLD}{title}{Colors.END}")
    print("─" * len(title))


def validate_specifications(loader: SpecificationLoader, settings) -> Tuple[Dict[str, ResourceSpecification], List[str]]:
    """
    Load every specification one file at a time so all failures are reported.

    Returns:
        Tuple of (loaded specifications, errors)
    """
    specifications: Dict[str, ResourceSpecification] = {}
    errors: List[str] = []

    for directory in settings.specs_paths:
        try:
            refs = loader.discover(directory)
        except ContractRuntimeError as e:
            errors.append(e.message)
            continue
        for ref in refs:
            if ref.name in specifications:
                errors.append(f"Duplicate resource name '{ref.name}' ({ref.spec_path})")
                continue
            try:
                specifications[ref.name] = loader.load(ref)
            except ContractRuntimeError as e:
                errors.append(e.message)

    return specifications, errors


def validate_contracts(specifications: Dict[str, ResourceSpecification],
                       guard_policy: str) -> Tuple[Dict[str, BehavioralContract], List[str]]:
    contracts: Dict[str, BehavioralContract] = {}
    errors: List[str] = []
    for name, spec in specifications.items():
        if spec.contract_path is None:
            continue
        try:
            contracts.update(ContractRuntime.load_contracts({name: spec}, guard_policy))
        except ContractRuntimeError as e:
            errors.append(e.message)
    return contracts, errors


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the validate_specs command."""
    parser = argparse.ArgumentParser(
        description="Validate specifications and behavioral contracts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate the default specs directory
  python -m contract_runtime.commands.validate_specs

  # Validate two directories, tolerating broken $refs
  python -m contract_runtime.commands.validate_specs --specs specs --specs vendor-specs --lenient
        """,
    )
    add_runtime_arguments(parser)
    args = parser.parse_args(argv)

    settings = settings_from_args(args)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)

    print(f"\n{Colors.BOLD}Contract Runtime Specification Validation{Colors.END}")
    print("=" * 50)

    print_section("Specifications")
    loader = SpecificationLoader(policy=settings.schema_ref_policy)
    specifications, spec_errors = validate_specifications(loader, settings)
    for name in sorted(specifications):
        spec = specifications[name]
        print_success(f"{name}: {spec.base_resource_path} ({len(spec.endpoints)} endpoints)")
    for error in spec_errors:
        print_error(error)

    print_section("Behavioral Contracts")
    contracts, contract_errors = validate_contracts(specifications, settings.guard_operator_policy)
    for name in sorted(contracts):
        contract = contracts[name]
        print_success(f"{name}: {len(contract.states)} states, triggers: {', '.join(contract.triggers)}")
    for error in contract_errors:
        print_error(error)
    if not contracts and not contract_errors:
        print_warning("No state machine files found")

    print_section("Request Schemas")
    schema_errors: List[str] = []
    for problem in ContractRuntime.request_schema_errors(specifications, contracts):
        if settings.schema_ref_policy == "strict":
            schema_errors.append(problem)
            print_error(problem)
        else:
            print_warning(problem)
    if not schema_errors:
        print_success("All request schemas are valid JSON Schema")

    print_section("Examples")
    for name in sorted(specifications):
        spec = specifications[name]
        if spec.examples_path is None:
            print_warning(f"{name}: no examples file")
            continue
        try:
            records = select_seed_records(load_examples(spec.examples_path))
        except ContractRuntimeError as e:
            spec_errors.append(e.message)
            print_error(e.message)
            continue
        print_success(f"{name}: {len(records)} seed records")

    print_section("Summary")
    errors = spec_errors + contract_errors + schema_errors
    if errors:
        print_error(f"{len(errors)} problem(s) found")
        return 1
    print_success(f"{len(specifications)} APIs valid")
    return 0


if __name__ == "__main__":
    sys.exit(main())
