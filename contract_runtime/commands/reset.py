#!/usr/bin/env python3
# contract_runtime/commands/reset.py
"""
Clear every resource store and re-import the example data.

Usage:
    python -m contract_runtime.commands.reset --specs specs --data-dir data
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..core.errors import ContractRuntimeError
from ..core.runtime import ContractRuntime
from . import add_runtime_arguments, configure_logging, settings_from_args

logger = logging.getLogger("contract_runtime.reset")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the reset command."""
    parser = argparse.ArgumentParser(description="Clear all stores and reseed from examples")
    add_runtime_arguments(parser)
    args = parser.parse_args(argv)

    settings = settings_from_args(args, seed_on_startup=False)
    configure_logging(settings, args.verbose)

    try:
        runtime = ContractRuntime.bootstrap(settings)
    except ContractRuntimeError as e:
        logger.error(f"Cannot load contracts: {e.message}")
        return 1

    try:
        seeded = runtime.reset()
    finally:
        runtime.close()

    for name, count in sorted(seeded.items()):
        logger.info(f"{name}: {count} records")
    logger.info("Reset complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
