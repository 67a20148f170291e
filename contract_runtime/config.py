# ============================================================================
# Contract Runtime - Application Configuration
# ============================================================================
"""
Application configuration module using Pydantic Settings.

This module defines all configuration parameters for the contract runtime,
including:
- API/CORS settings
- Specification discovery and storage locations
- Strict vs lenient policies for schema references and guard operators
- Caller context headers

Environment Variables:
    Every field can be set from the environment or a .env file, e.g.
    SPECS_DIRS='["specs", "more-specs"]', DATA_DIR=data, SEED_ON_STARTUP=false

Usage:
    from contract_runtime.config import Settings

    settings = Settings(specs_dirs=["specs"], data_dir="")
    settings.data_path  # None means in-memory storage
"""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

Policy = Literal["strict", "lenient"]


class Settings(BaseSettings):
    # =========================================================================
    # API SETTINGS
    # =========================================================================
    api_title: str = "Contract Runtime"
    api_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Include exception details in 500 responses")
    log_level: str = Field(default="INFO", description="Root log level for the commands")
    host: str = Field(default="0.0.0.0", description="Bind address for the serve command")
    port: int = Field(default=3000, description="Bind port for the serve command")
    public_base_url: Optional[str] = Field(
        default=None,
        description="Absolute base URL used in Location headers (defaults to the request base URL)",
    )

    # =========================================================================
    # CORS SETTINGS
    # =========================================================================
    cors_origins: List[str] = Field(default=["*"], description="Allowed origins for CORS")

    # =========================================================================
    # SPECIFICATIONS AND STORAGE
    # =========================================================================
    specs_dirs: List[str] = Field(
        default=["specs"],
        description="Directories scanned for <resource>-openapi.yaml files",
    )
    data_dir: str = Field(
        default="data",
        description="Directory holding one SQLite database per resource; empty or ':memory:' keeps data in memory",
    )
    seed_on_startup: bool = Field(default=True, description="Import example records into empty stores")
    reset_on_startup: bool = Field(default=False, description="Clear every store before seeding")

    # =========================================================================
    # POLICIES
    # =========================================================================
    schema_ref_policy: Policy = Field(
        default="strict",
        description="strict: broken or circular $ref aborts loading; lenient: log and continue",
    )
    guard_operator_policy: Policy = Field(
        default="lenient",
        description="strict: unknown guard operators fail; lenient: they pass with a warning",
    )

    # =========================================================================
    # CALLER CONTEXT
    # =========================================================================
    caller_id_header: str = Field(default="X-Caller-Id", description="Header carrying the caller id")
    caller_role_header: str = Field(default="X-Caller-Role", description="Header carrying the caller role")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    # -------- Path helpers --------
    @property
    def specs_paths(self) -> List[Path]:
        return [Path(d) for d in self.specs_dirs]

    @property
    def data_path(self) -> Optional[Path]:
        if not self.data_dir or self.data_dir == ":memory:":
            return None
        return Path(self.data_dir)


# Global settings instance (used when no explicit Settings are passed)
settings = Settings()
