"""
Resolution output models.

Results are transient: produced per request and discarded afterwards. The
extraction metadata mirrors the ``metadata.json`` written next to extracted APKs.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from pydantic import Field

from .catalog import DeliveryType, SplitArtifact
from .targeting import CatalogModel


class ResolvedModule(CatalogModel):
    """Master split plus per-dimension winners of one module."""

    name: str
    delivery_type: DeliveryType
    master: SplitArtifact
    config_splits: list[SplitArtifact] = Field(default_factory=list)

    @property
    def splits(self) -> list[SplitArtifact]:
        return [self.master, *self.config_splits]


class ResolvedArtifact(CatalogModel):
    """An artifact to extract or install."""

    path: str
    module_name: str
    delivery_type: DeliveryType
    is_master: bool = False


class ResolutionResult(CatalogModel):
    """Ordered outcome of resolving an APK Set for one device."""

    variant_number: int | None = Field(default=None)
    modules: list[ResolvedModule] = Field(default_factory=list)
    asset_modules: list[ResolvedModule] = Field(default_factory=list)
    artifacts: list[ResolvedArtifact] = Field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [artifact.path for artifact in self.artifacts]

    @property
    def module_names(self) -> list[str]:
        return [module.name for module in self.modules]


class ExtractedApk(CatalogModel):
    """Metadata entry of one extracted artifact."""

    path: str
    delivery_type: DeliveryType
    module_name: str


class LocalTestingInfoForMetadata(CatalogModel):
    local_testing_dir: str


class ExtractionMetadata(CatalogModel):
    """Structured audit record of an extraction."""

    apks: list[ExtractedApk] = Field(default_factory=list)
    local_testing_info: LocalTestingInfoForMetadata | None = Field(default=None)

    @classmethod
    def from_result(
        cls, result: ResolutionResult, local_testing_dir: str | None = None
    ) -> ExtractionMetadata:
        """Build the audit record of a resolution result.

        Args:
            result: Resolution result whose artifacts are listed.
            local_testing_dir: On-device local testing directory, if enabled.

        Returns:
            Metadata listing artifact file names, delivery types and modules.
        """
        return cls(
            apks=[
                ExtractedApk(
                    path=PurePosixPath(artifact.path).name,
                    delivery_type=artifact.delivery_type,
                    module_name=artifact.module_name,
                )
                for artifact in result.artifacts
            ],
            local_testing_info=(
                LocalTestingInfoForMetadata(local_testing_dir=local_testing_dir)
                if local_testing_dir
                else None
            ),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def resolve_local_testing_path(local_testing_path: str, package_name: str) -> str:
    """Resolve the on-device local testing directory.

    Absolute paths are kept; relative paths live in the app's external files dir.
    """
    if local_testing_path.startswith("/"):
        return local_testing_path
    return f"/sdcard/Android/data/{package_name}/files/{local_testing_path}"
