"""
Configuration management for apkset.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for the resolver, the adb install driver and artifact storage.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


class ResolverConfig(BaseModel):
    """Device-targeting resolution configuration.

    Passed explicitly to the assembler; resolution never reads global state.
    """

    max_schema_major_version: int = Field(
        default=1, ge=0, description="Highest catalog schema major version accepted"
    )
    sdk_runtime_min_sdk: int = Field(
        default=33,
        ge=1,
        description="SDK from which a device is assumed to support the SDK runtime",
    )
    include_install_time_asset_modules: bool = Field(
        default=True, description="Resolve install-time asset modules by default"
    )
    default_screen_density: int = Field(
        default=160, ge=1, description="Density assumed when neither device nor catalog sets one"
    )


class AdbConfig(BaseModel):
    """adb install transport configuration."""

    adb_path: Path | None = Field(default=None, description="Custom adb binary path")
    serial: str | None = Field(default=None, description="Target device serial")
    command_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Timeout applied to every adb round trip"
    )
    push_retries: int = Field(default=3, ge=1, description="Attempts for transient push failures")
    enable_rollback: bool = Field(default=False, description="Pass --enable-rollback to pm")
    staged: bool = Field(default=False, description="Create staged install sessions")


class StorageConfig(BaseModel):
    """Storage configuration for extracted artifacts."""

    base_path: Path = Field(
        default=Path("./extracted-apks"), description="Base path for extracted artifacts"
    )


class Config(BaseModel):
    """Root configuration for apkset."""

    project_name: str = Field(default="apkset", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    adb: AdbConfig = Field(default_factory=AdbConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        adb_path = os.environ.get("APKSET_ADB_PATH")
        return cls(
            log_level=os.environ.get("APKSET_LOG_LEVEL", "INFO"),  # type: ignore
            resolver=ResolverConfig(
                max_schema_major_version=int(os.environ.get("APKSET_MAX_SCHEMA_MAJOR", "1")),
                include_install_time_asset_modules=(
                    os.environ.get("APKSET_INSTALL_TIME_ASSETS", "true").lower() == "true"
                ),
            ),
            adb=AdbConfig(
                adb_path=Path(adb_path).expanduser() if adb_path else None,
                serial=os.environ.get("ANDROID_SERIAL"),
                command_timeout_seconds=float(os.environ.get("APKSET_ADB_TIMEOUT", "60")),
                enable_rollback=os.environ.get("APKSET_ENABLE_ROLLBACK", "false").lower() == "true",
            ),
            storage=StorageConfig(
                base_path=Path(os.environ.get("APKSET_OUTPUT_PATH", "./extracted-apks")),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
