"""
Size Service.

Estimates the download size of an APK Set per device configuration. An
artifact weighs its recorded ``sizeBytes`` when the table of contents carries
one, else its gzip-compressed length as read from the APK Set.
"""

from __future__ import annotations

import contextlib
import csv
import gzip
import io
import time
import zipfile
from pathlib import Path

from pydantic import BaseModel, Field

from ...core.config import ResolverConfig
from ...core.exceptions import ApkSetError, InvalidInputError, MalformedCatalogError, ServiceError
from ...core.logging import get_logger
from ...core.types import ServiceResult
from ...models.catalog import Catalog
from ...models.device import DeviceProfile
from ...models.targeting import Dimension
from ...resolution.sizes import ConfigurationSize, SizeCalculator

logger = get_logger(__name__)

# zlib default level
GZIP_LEVEL = 6


def format_size(size: int, human_readable: bool = False) -> str:
    """Render a byte count, optionally in binary KB/MB/GB units."""
    if not human_readable:
        return str(size)
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"


class SizeInput(BaseModel):
    """Input for the size service."""

    apk_set_path: Path = Field(description="Path to the .apks archive or APK Set directory")
    catalog: Catalog
    device: DeviceProfile = Field(
        default_factory=lambda: DeviceProfile(sdk_version=0),
        description="Device to size for; unspecified dimensions are expanded",
    )
    dimensions: list[Dimension] = Field(default_factory=list)
    modules: list[str] | None = None
    instant: bool = False


class SizeOutput(BaseModel):
    """Output from the size service."""

    dimensions: list[Dimension] = Field(default_factory=list)
    sizes: list[ConfigurationSize] = Field(default_factory=list)

    def to_csv(self, human_readable: bool = False) -> str:
        """Render one row per configuration, then its MIN and MAX sizes."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([d.value for d in self.dimensions] + ["MIN", "MAX"])
        for entry in self.sizes:
            writer.writerow(
                [entry.configuration.get(d, "") for d in self.dimensions]
                + [
                    format_size(entry.min_bytes, human_readable),
                    format_size(entry.max_bytes, human_readable),
                ]
            )
        return buffer.getvalue()


class ArtifactSizes:
    """Measures artifacts on demand, once each."""

    def __init__(
        self, apk_set_path: Path, catalog: Catalog, archive: zipfile.ZipFile | None = None
    ) -> None:
        self.apk_set_path = apk_set_path
        self.archive = archive
        self.declared = {
            split.path: split.size_bytes
            for split in catalog.all_splits()
            if split.size_bytes is not None
        }
        self._measured: dict[str, int] = {}

    def __call__(self, path: str) -> int:
        declared = self.declared.get(path)
        if declared is not None:
            return declared
        if path not in self._measured:
            self._measured[path] = len(gzip.compress(self._read(path), compresslevel=GZIP_LEVEL))
        return self._measured[path]

    def _read(self, path: str) -> bytes:
        if self.archive is not None:
            try:
                return self.archive.read(path)
            except KeyError as e:
                raise MalformedCatalogError(
                    message=f"Artifact '{path}' listed in the table of contents is missing from the archive.",
                    defect="missing-artifact",
                    context={"archive": str(self.apk_set_path)},
                    cause=e,
                )
        source = self.apk_set_path / path
        if not source.is_file():
            raise MalformedCatalogError(
                message=f"Artifact '{path}' listed in the table of contents is missing from the APK Set.",
                defect="missing-artifact",
                context={"directory": str(self.apk_set_path)},
            )
        return source.read_bytes()


class ApkSetSizeService:
    """Service computing download sizes of an APK Set."""

    def __init__(self, config: ResolverConfig | None = None) -> None:
        """Initialize the size service.

        Args:
            config: Resolver configuration; defaults apply when omitted.
        """
        self.config = config

    def get_size_total(self, input_data: SizeInput) -> ServiceResult[SizeOutput]:
        """Compute the total download size per configuration.

        Args:
            input_data: APK Set, catalog, device and grouping dimensions.

        Returns:
            ServiceResult containing the size range of every configuration.

        Raises:
            InvalidInputError: On an unreadable archive or a malformed request.
            IncompatibleDeviceError: If no configuration can be served.
            MalformedCatalogError: If an artifact is absent from the APK Set.
        """
        start_time = time.perf_counter()
        apk_set = input_data.apk_set_path
        dimensions = [d for d in Dimension if d in input_data.dimensions]
        logger.info(
            "Starting size computation",
            apk_set=str(apk_set),
            dimensions=[d.value for d in dimensions],
        )

        with contextlib.ExitStack() as stack:
            archive = None
            if not apk_set.is_dir():
                try:
                    archive = stack.enter_context(zipfile.ZipFile(apk_set, "r"))
                except (OSError, zipfile.BadZipFile) as e:
                    raise InvalidInputError(
                        message=f"APK Set '{apk_set}' is not a readable zip archive.",
                        field_name="apks",
                        cause=e,
                    )
            sizes = ArtifactSizes(apk_set, input_data.catalog, archive)
            try:
                entries = SizeCalculator(input_data.catalog, sizes, self.config).compute(
                    input_data.device,
                    dimensions=dimensions,
                    modules=input_data.modules,
                    instant=input_data.instant,
                )
            except ApkSetError:
                raise
            except Exception as e:
                logger.error("Size computation failed", error=str(e))
                raise ServiceError(
                    message=f"Size computation failed: {e}",
                    service_name="size",
                    operation="get_size_total",
                    cause=e,
                )

        output = SizeOutput(dimensions=dimensions, sizes=entries)
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Size computation completed", configurations=len(entries), duration_ms=duration_ms
        )
        return ServiceResult.ok(output, duration_ms=duration_ms)
