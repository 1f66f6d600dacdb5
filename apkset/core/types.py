"""
Core type definitions for apkset.

Module name constants and the result wrapper returned by the collaborator services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

# Requesting this name selects every module of the chosen variant and every asset module.
ALL_MODULES = "_ALL_"

BASE_MODULE = "base"

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Result wrapper for service operations.

    Failures are raised as ApkSetError subclasses, so a result always holds
    data, plus any warnings and metadata such as the duration.
    """

    success: bool
    data: T | None = None
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: T, **metadata: Any) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def with_warnings(cls, data: T, warnings: list[str], **metadata: Any) -> ServiceResult[T]:
        """Create a successful result with warnings."""
        return cls(success=True, data=data, warnings=warnings, metadata=metadata)
