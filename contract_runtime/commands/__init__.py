# contract_runtime/commands/__init__.py
"""
Command-line entry points.

    python -m contract_runtime.commands.serve          run the API server
    python -m contract_runtime.commands.reset          clear stores and reseed
    python -m contract_runtime.commands.validate_specs check specs and contracts
"""

import argparse
import logging
from typing import Any, Dict

from ..config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def add_runtime_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by every command; unset options fall back to Settings."""
    parser.add_argument(
        "--specs",
        action="append",
        metavar="DIR",
        help="Directory containing <resource>-openapi.yaml files (repeatable)",
    )
    parser.add_argument(
        "--data-dir",
        help="Directory for the per-resource SQLite databases ('' for in-memory)",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Log broken $refs and unknown guard operators instead of failing",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")


def settings_from_args(args: argparse.Namespace, **overrides: Any) -> Settings:
    values: Dict[str, Any] = {}
    if args.specs:
        values["specs_dirs"] = args.specs
    if args.data_dir is not None:
        values["data_dir"] = args.data_dir
    if args.lenient:
        values["schema_ref_policy"] = "lenient"
        values["guard_operator_policy"] = "lenient"
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format=LOG_FORMAT,
    )
