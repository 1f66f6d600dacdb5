"""
Custom exception hierarchy for apkset.

All exceptions inherit from ApkSetError so callers can surface a single typed
failure per request. Resolution failures are never retried; only transport
failures of the install driver may be flagged as retryable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ApkSetError(Exception):
    """Base exception for all apkset errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class InvalidInputError(ApkSetError):
    """Raised for malformed device descriptors and invalid module requests."""

    field_name: str | None = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Invalid input for '{self.field_name}': {base}"
        return f"Invalid input: {base}"


@dataclass
class IncompatibleDeviceError(ApkSetError):
    """Raised when no variant or split satisfies the device along a dimension."""

    dimensions: list[str] = field(default_factory=list)
    module_name: str | None = None


@dataclass
class MalformedCatalogError(ApkSetError):
    """Raised when the catalog violates a structural invariant.

    The catalog is treated as corrupt input and is never auto-corrected.
    """

    defect: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        if self.defect:
            return f"Malformed catalog [{self.defect}]: {base}"
        return f"Malformed catalog: {base}"


@dataclass
class ServiceError(ApkSetError):
    """Raised when a collaborator service operation fails."""

    service_name: str = ""
    operation: str = ""
    retryable: bool = False

    def __str__(self) -> str:
        base = super().__str__()
        retry_hint = " (retryable)" if self.retryable else " (non-retryable)"
        return f"[{self.service_name}.{self.operation}]{retry_hint}: {base}"


@dataclass
class DeviceCommandError(ServiceError):
    """Raised when a device round trip fails at the transport level."""

    command: str = ""
    serial: str = ""

    def __post_init__(self) -> None:
        self.service_name = "device"


@dataclass
class ProtocolError(DeviceCommandError):
    """Raised when a device command answers with unexpected output."""

    output: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.retryable = False


@dataclass
class ToolNotFoundError(ApkSetError):
    """Raised when a required external tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"
