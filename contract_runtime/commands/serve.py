#!/usr/bin/env python3
# contract_runtime/commands/serve.py
"""
Run the contract runtime API server.

Usage:
    python -m contract_runtime.commands.serve --specs specs
    python -m contract_runtime.commands.serve --specs specs --specs more-specs --port 8080
    python -m contract_runtime.commands.serve --specs specs --data-dir "" --no-seed
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from ..core.errors import ContractRuntimeError
from ..main import create_app
from . import add_runtime_arguments, configure_logging, settings_from_args

logger = logging.getLogger("contract_runtime.serve")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the serve command."""
    parser = argparse.ArgumentParser(description="Serve REST and RPC APIs from contract files")
    add_runtime_arguments(parser)
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="Bind port")
    parser.add_argument("--no-seed", action="store_true", help="Do not import example data")
    parser.add_argument("--reset", action="store_true", help="Clear every store before seeding")
    args = parser.parse_args(argv)

    settings = settings_from_args(
        args,
        host=args.host,
        port=args.port,
        seed_on_startup=False if args.no_seed else None,
        reset_on_startup=True if args.reset else None,
    )
    configure_logging(settings, args.verbose)

    try:
        app = create_app(settings)
    except ContractRuntimeError as e:
        logger.error(f"Cannot start: {e.message}")
        return 1

    logger.info(f"Listening on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")
    return 0


if __name__ == "__main__":
    sys.exit(main())
