"""
Extraction Service.

Copies the artifacts of a resolution result out of an ``.apks`` archive into a
storage backend, optionally writing ``metadata.json`` alongside them. Artifacts
of an extracted APK Set directory are located in place.
"""

from __future__ import annotations

import time
import zipfile
from collections import Counter
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field

from ...core.exceptions import ApkSetError, MalformedCatalogError, ServiceError
from ...core.logging import get_logger
from ...core.types import ServiceResult
from ...models.result import ExtractionMetadata, ResolutionResult
from ...storage import StorageBackend

logger = get_logger(__name__)

METADATA_FILE_NAME = "metadata.json"


class ExtractionInput(BaseModel):
    """Input for the extraction service."""

    apk_set_path: Path = Field(description="Path to the .apks archive or APK Set directory")
    result: ResolutionResult
    metadata: ExtractionMetadata | None = Field(
        default=None, description="Audit record to write next to the artifacts"
    )
    reject_name_clashes: bool = Field(
        default=False,
        description="Fail instead of warning when two artifacts share a file name",
    )


class ExtractionOutput(BaseModel):
    """Output from the extraction service."""

    extracted_paths: list[Path] = Field(default_factory=list)
    metadata_path: Path | None = None


class ApkExtractionService:
    """Service extracting resolved artifacts from an APK Set.

    Artifacts are written flat, keyed by file name, in resolution order.
    """

    def __init__(self, storage: StorageBackend) -> None:
        """Initialize the extraction service.

        Args:
            storage: Storage backend extracted artifacts are written to.
        """
        self.storage = storage

    @staticmethod
    def _key_for(artifact_path: str) -> str:
        return PurePosixPath(artifact_path).name

    async def _extract_from_archive(self, archive: Path, paths: list[str]) -> list[str]:
        keys: list[str] = []
        with zipfile.ZipFile(archive, "r") as zf:
            entries = set(zf.namelist())
            for path in paths:
                if path not in entries:
                    raise MalformedCatalogError(
                        message=f"Artifact '{path}' listed in the table of contents is missing from the archive.",
                        defect="missing-artifact",
                        context={"archive": str(archive)},
                    )
                keys.append(await self.storage.store_bytes(self._key_for(path), zf.read(path)))
        return keys

    @staticmethod
    def _locate_in_directory(directory: Path, paths: list[str]) -> list[Path]:
        located: list[Path] = []
        for path in paths:
            source = (directory / path).resolve()
            if not source.is_file():
                raise MalformedCatalogError(
                    message=f"Artifact '{path}' listed in the table of contents is missing from the APK Set.",
                    defect="missing-artifact",
                    context={"directory": str(directory)},
                )
            located.append(source)
        return located

    async def extract(self, input_data: ExtractionInput) -> ServiceResult[ExtractionOutput]:
        """Extract the artifacts of a resolution result.

        Args:
            input_data: APK Set location, resolution result and optional metadata.

        Returns:
            ServiceResult containing the extracted file locations.

        Raises:
            MalformedCatalogError: If a resolved artifact is absent from the APK Set.
            ServiceError: If writing the artifacts fails or, when clashes are rejected,
                two artifacts share a file name.
        """
        start_time = time.perf_counter()
        paths = input_data.result.paths
        clashes = sorted(
            name for name, count in Counter(self._key_for(p) for p in paths).items() if count > 1
        )
        if clashes and input_data.reject_name_clashes:
            raise ServiceError(
                message=f"Several artifacts share a file name: {clashes}",
                service_name="extraction",
                operation="extract",
            )
        logger.info(
            "Starting extraction",
            apk_set=str(input_data.apk_set_path),
            artifacts=len(paths),
        )

        try:
            if input_data.apk_set_path.is_dir():
                keys = []
                extracted = self._locate_in_directory(input_data.apk_set_path, paths)
            else:
                keys = await self._extract_from_archive(input_data.apk_set_path, paths)
                extracted = [self.storage.path_for(key) for key in keys]

            metadata_path = None
            if input_data.metadata is not None:
                key = await self.storage.store_model(METADATA_FILE_NAME, input_data.metadata)
                metadata_path = self.storage.path_for(key)

        except ApkSetError:
            raise
        except Exception as e:
            logger.error("Extraction failed", error=str(e))
            raise ServiceError(
                message=f"Extraction failed: {e}",
                service_name="extraction",
                operation="extract",
                cause=e,
            )

        output = ExtractionOutput(extracted_paths=extracted, metadata_path=metadata_path)
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info("Extraction completed", artifacts=len(extracted), duration_ms=duration_ms)

        if clashes and keys:
            warnings = [
                f"Several artifacts share a file name; later ones overwrote earlier ones: {clashes}"
            ]
            return ServiceResult.with_warnings(output, warnings, duration_ms=duration_ms)
        return ServiceResult.ok(output, duration_ms=duration_ms)
