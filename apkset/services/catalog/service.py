"""
Catalog Service.

Reads the JSON table of contents of an APK Set, either from an ``.apks`` zip
archive or from an extracted APK Set directory, and validates it.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

from pydantic import ValidationError

from ...core.config import ResolverConfig
from ...core.exceptions import InvalidInputError, MalformedCatalogError
from ...core.logging import get_logger
from ...models.catalog import Catalog
from ...resolution.validation import CatalogValidator

logger = get_logger(__name__)

TABLE_OF_CONTENTS_JSON = "toc.json"
TABLE_OF_CONTENTS_BINARY = "toc.pb"


class CatalogLoader:
    """Loads and validates APK Set catalogs."""

    def __init__(self, config: ResolverConfig | None = None) -> None:
        """Initialize the loader.

        Args:
            config: Resolver configuration carrying the schema version gate.
        """
        self.validator = CatalogValidator(config)

    def _read_toc(self, apk_set: Path) -> str:
        if apk_set.is_dir():
            toc = apk_set / TABLE_OF_CONTENTS_JSON
            if not toc.exists():
                self._raise_missing_toc(apk_set, (apk_set / TABLE_OF_CONTENTS_BINARY).exists())
            return toc.read_text(encoding="utf-8")

        try:
            with zipfile.ZipFile(apk_set, "r") as zf:
                names = zf.namelist()
                if TABLE_OF_CONTENTS_JSON not in names:
                    self._raise_missing_toc(apk_set, TABLE_OF_CONTENTS_BINARY in names)
                return zf.read(TABLE_OF_CONTENTS_JSON).decode("utf-8")
        except zipfile.BadZipFile as e:
            raise InvalidInputError(
                message=f"APK Set '{apk_set}' is not a valid zip archive.",
                field_name="apks",
                cause=e,
            )

    @staticmethod
    def _raise_missing_toc(apk_set: Path, has_binary_toc: bool) -> None:
        hint = " Binary tables of contents are not supported." if has_binary_toc else ""
        raise MalformedCatalogError(
            message=f"APK Set '{apk_set}' has no {TABLE_OF_CONTENTS_JSON}.{hint}",
            defect="missing-toc",
        )

    def load(self, apk_set: Path) -> Catalog:
        """Load the catalog of an APK Set.

        Args:
            apk_set: ``.apks`` archive or APK Set directory.

        Returns:
            The validated catalog.

        Raises:
            InvalidInputError: If the path does not exist or is not an archive.
            MalformedCatalogError: If the table of contents is missing or invalid.
        """
        if not apk_set.exists():
            raise InvalidInputError(
                message=f"APK Set '{apk_set}' does not exist.", field_name="apks"
            )
        catalog = self.parse(self._read_toc(apk_set))
        logger.debug(
            "Catalog loaded",
            path=str(apk_set),
            package=catalog.package_name,
            variants=len(catalog.variants),
            asset_modules=len(catalog.asset_slice_sets),
        )
        return catalog

    def parse(self, text: str) -> Catalog:
        """Parse and validate a JSON table of contents.

        Raises:
            MalformedCatalogError: If the document does not describe a valid catalog.
        """
        try:
            catalog = Catalog.model_validate_json(text)
        except ValidationError as e:
            raise MalformedCatalogError(
                message=f"Table of contents does not match the catalog schema: {e.error_count()} errors",
                defect="schema",
                cause=e,
            )
        self.validator.validate(catalog)
        return catalog
