# contract_runtime/__init__.py
"""Contract-driven API runtime: REST and RPC endpoints from declarative contracts."""

__version__ = "1.0.0"
