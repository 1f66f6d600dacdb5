"""Unit tests for APK Set assembly."""

import json

import pytest
import structlog

from apkset.core.config import ResolverConfig
from apkset.core.exceptions import IncompatibleDeviceError, InvalidInputError, MalformedCatalogError
from apkset.core.types import ALL_MODULES
from apkset.models import DeliveryType, Dimension, LocalTestingInfo, resolve_local_testing_path
from apkset.resolution import ApkSetAssembler

from builders import catalog as build_catalog
from builders import device, group, master, module, variant

DEFAULT_PATHS = [
    "splits/base-master.apk",
    "splits/base-arm64-v8a.apk",
    "splits/base-480.apk",
    "splits/base-en.apk",
    "splits/camera-master.apk",
    "asset-slices/textures-master.apk",
    "asset-slices/textures-other.apk",
]


class TestApkSetAssembler:
    """Tests for ApkSetAssembler."""

    def test_default_resolution(self, catalog):
        """Test the ordered artifacts delivered to a typical device."""
        result = ApkSetAssembler(catalog).resolve(device())

        assert result.variant_number == 1
        assert result.module_names == ["base", "camera"]
        assert [m.name for m in result.asset_modules] == ["textures"]
        assert result.paths == DEFAULT_PATHS

    def test_artifact_attributes(self, catalog):
        """Test that each artifact carries its module, delivery type and master flag."""
        result = ApkSetAssembler(catalog).resolve(device())

        first, last = result.artifacts[0], result.artifacts[-1]
        assert (first.module_name, first.delivery_type, first.is_master) == (
            "base",
            DeliveryType.INSTALL_TIME,
            True,
        )
        assert (last.module_name, last.is_master) == ("textures", False)

    def test_deterministic(self, catalog):
        """Test that repeated resolution yields identical ordered output."""
        assembler = ApkSetAssembler(catalog)
        profile = device(locales=("fr-FR", "en-US"), gl_extensions=["GL_KHR_texture_compression_astc_ldr"])

        outputs = {
            assembler.resolve(profile, modules=[ALL_MODULES]).model_dump_json() for _ in range(5)
        }

        assert len(outputs) == 1

    def test_requested_modules(self, catalog):
        """Test that requested on-demand modules and asset modules are delivered."""
        result = ApkSetAssembler(catalog).resolve(device(), modules=["maps", "levels"])

        assert result.module_names == ["base", "camera", "geo", "maps"]
        assert [m.name for m in result.asset_modules] == ["textures", "levels"]
        assert result.paths[-1] == "asset-slices/levels-master.apk"

    def test_install_time_assets_excluded(self, catalog):
        """Test that install-time asset modules can be left out."""
        result = ApkSetAssembler(catalog).resolve(
            device(), include_install_time_asset_modules=False
        )

        assert result.asset_modules == []

    def test_install_time_assets_config(self, catalog):
        """Test that the configured default for install-time asset modules applies."""
        config = ResolverConfig(include_install_time_asset_modules=False)

        result = ApkSetAssembler(catalog, config).resolve(device())

        assert result.asset_modules == []

    def test_texture_format_from_gl_extensions(self, catalog):
        """Test that asset slices are matched like module splits."""
        profile = device(gl_extensions=["GL_KHR_texture_compression_astc_ldr"])

        result = ApkSetAssembler(catalog).resolve(profile)

        assert result.paths[-1] == "asset-slices/textures-ASTC.apk"

    def test_texture_format_from_gl_es_version(self, catalog):
        """Test that an OpenGL ES 3.0 device receives the ETC2 asset slice."""
        result = ApkSetAssembler(catalog).resolve(device(gl_es_version=0x30000))

        assert result.paths[-1] == "asset-slices/textures-ETC2.apk"

    def test_unknown_module(self, catalog):
        """Test that an unknown module request is rejected."""
        with pytest.raises(InvalidInputError, match=r"\[unknown_module\]"):
            ApkSetAssembler(catalog).resolve(device(), modules=["unknown_module"])

    def test_invalid_device(self, catalog):
        """Test that a malformed device descriptor is rejected."""
        with pytest.raises(InvalidInputError):
            ApkSetAssembler(catalog).resolve(device(sdk=0))

    def test_incompatible_device(self, catalog):
        """Test that an unsupported SDK surfaces as IncompatibleDevice."""
        with pytest.raises(IncompatibleDeviceError, match=r"SDK version \(19\)"):
            ApkSetAssembler(catalog).resolve(device(sdk=19))

    def test_device_without_abis(self, catalog):
        """Test that a device spec omitting ABIs is invalid input for ABI-split modules."""
        with pytest.raises(InvalidInputError) as exc_info:
            ApkSetAssembler(catalog).resolve(device(supported_abis=()))

        assert exc_info.value.field_name == "supportedAbis"

    def test_non_numeric_tier_default(self):
        """Test that a malformed tier default is reported as a catalog defect."""
        splits = [master("splits/base-master.apk"), *group("device_tier", "splits/base", [0, 1])]
        cat = build_catalog(
            [variant(1, [module("base", splits)])], defaults={Dimension.DEVICE_TIER: "high"}
        )

        with pytest.raises(MalformedCatalogError, match="high"):
            ApkSetAssembler(cat).resolve(device())

        result = ApkSetAssembler(cat, validate=False).resolve(device())
        assert result.paths == ["splits/base-master.apk", "splits/base-0.apk"]

    def test_request_id_unbound_after_resolution(self, catalog):
        """Test that the per-request log context is cleared, even on failure."""
        ApkSetAssembler(catalog).resolve(device())
        with pytest.raises(IncompatibleDeviceError):
            ApkSetAssembler(catalog).resolve(device(sdk=19))

        assert "request_id" not in structlog.contextvars.get_contextvars()

    def test_malformed_catalog_rejected_up_front(self):
        """Test that the assembler validates its catalog."""
        with pytest.raises(MalformedCatalogError):
            ApkSetAssembler(build_catalog([variant(1, [module("feature")])]))

    def test_no_compatible_apks(self):
        """Test instant resolution of an APK Set without instant APKs."""
        cat = build_catalog([variant(1, [module("base")])])

        with pytest.raises(IncompatibleDeviceError, match="No compatible APKs found"):
            ApkSetAssembler(cat).resolve(device(), instant=True)

    def test_instant_resolution(self):
        """Test that instant APKs are delivered and asset modules skipped."""
        cat = build_catalog(
            [
                variant(
                    1,
                    [module("base", instant_splits=[master("instant/base-master.apk")])],
                )
            ]
        )

        result = ApkSetAssembler(cat).resolve(device(), instant=True)

        assert result.paths == ["instant/base-master.apk"]


class TestExtractionMetadata:
    """Tests for the audit record of a resolution."""

    def test_metadata_lists_file_names(self, catalog):
        """Test that metadata lists each artifact's file name, delivery type and module."""
        assembler = ApkSetAssembler(catalog)

        data = json.loads(assembler.metadata(assembler.resolve(device())).to_json())

        assert data["apks"][0] == {
            "path": "base-master.apk",
            "deliveryType": "INSTALL_TIME",
            "moduleName": "base",
        }
        assert len(data["apks"]) == len(DEFAULT_PATHS)
        assert "localTestingInfo" not in data

    def test_local_testing_dir(self, catalog):
        """Test that local testing info resolves the on-device directory."""
        testing = catalog.model_copy(
            update={"local_testing": LocalTestingInfo(enabled=True, local_testing_path="local_testing")}
        )
        assembler = ApkSetAssembler(testing)

        data = json.loads(assembler.metadata(assembler.resolve(device())).to_json())

        assert data["localTestingInfo"] == {
            "localTestingDir": "/sdcard/Android/data/com.example.app/files/local_testing"
        }

    def test_absolute_local_testing_path(self):
        """Test that absolute local testing paths are kept."""
        assert resolve_local_testing_path("/data/tmp/x", "com.example") == "/data/tmp/x"
