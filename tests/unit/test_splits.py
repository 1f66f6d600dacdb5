"""Unit tests for split resolution."""

import pytest

from apkset.core.exceptions import IncompatibleDeviceError, InvalidInputError, MalformedCatalogError
from apkset.matching import MatchContext
from apkset.models import DeliveryType, Dimension
from apkset.resolution import SplitResolver, group_by_dimension

from builders import abis, base_module, catalog, device, group, master, module, split, targeting_value, variant


def resolver_for(profile, defaults=None):
    cat = catalog([variant(1, [module("base")])], defaults=defaults)
    return SplitResolver(MatchContext.create(profile, cat))


class TestGroupByDimension:
    """Tests for grouping configuration splits."""

    def test_groups_in_emission_order(self):
        """Test that groups follow dimension order regardless of catalog order."""
        splits = [
            master("m.apk"),
            *group("language", "l", ["en", "fr"]),
            *group("abi", "a", [abis("x86"), abis("arm64-v8a")]),
        ]

        groups = group_by_dimension(splits)

        assert list(groups) == [Dimension.ABI, Dimension.LANGUAGE]
        assert [s.path for s in groups[Dimension.LANGUAGE]] == ["l-en.apk", "l-fr.apk"]


class TestSplitResolver:
    """Tests for SplitResolver."""

    def test_one_winner_per_dimension(self):
        """Test that the master and one split per dimension are selected."""
        resolved = resolver_for(device()).resolve("base", DeliveryType.INSTALL_TIME, base_module().splits)

        assert [s.path for s in resolved.splits] == [
            "splits/base-master.apk",
            "splits/base-arm64-v8a.apk",
            "splits/base-480.apk",
            "splits/base-en.apk",
        ]

    def test_abi_mismatch(self):
        """Test that a module whose ABI splits do not fit the device fails as a whole."""
        splits = [master("base-master.apk"), split("base-x86.apk", abi=targeting_value(abis("x86")))]

        with pytest.raises(IncompatibleDeviceError) as exc_info:
            resolver_for(device(supported_abis=("arm64-v8a",))).resolve(
                "base", DeliveryType.INSTALL_TIME, splits
            )

        error = exc_info.value
        assert error.dimensions == ["ABI"]
        assert error.module_name == "base"
        assert "Missing APKs for [ABI] dimensions in the module 'base' for the provided device." in error.message
        assert "Device ABIs: [arm64-v8a], app ABIs: [x86]" in error.message

    def test_device_without_abis(self):
        """Test that ABI splits need the device to list its ABIs."""
        with pytest.raises(InvalidInputError) as exc_info:
            resolver_for(device(supported_abis=())).resolve(
                "base", DeliveryType.INSTALL_TIME, base_module().splits
            )

        assert exc_info.value.field_name == "supportedAbis"
        assert "'base'" in exc_info.value.message

    def test_device_without_abis_and_no_abi_splits(self):
        """Test that a device without ABIs is fine when no split targets ABIs."""
        splits = [master("m.apk"), *group("language", "l", ["en", "fr"])]

        resolved = resolver_for(device(supported_abis=())).resolve(
            "base", DeliveryType.INSTALL_TIME, splits
        )

        assert [s.path for s in resolved.splits] == ["m.apk", "l-en.apk"]

    def test_missing_language_is_not_fatal(self):
        """Test that no language split is delivered when none matches the device."""
        splits = [master("m.apk"), *group("language", "l", ["fr", "de"])]

        resolved = resolver_for(device(locales=("ja-JP",))).resolve(
            "base", DeliveryType.INSTALL_TIME, splits
        )

        assert [s.path for s in resolved.splits] == ["m.apk"]

    def test_language_fallback(self):
        """Test that the fallback language split serves unknown languages."""
        splits = [master("m.apk"), *group("language", "l", ["fr"], fallback=True)]

        resolved = resolver_for(device(locales=("ja-JP",))).resolve(
            "base", DeliveryType.INSTALL_TIME, splits
        )

        assert [s.path for s in resolved.config_splits] == ["l-other.apk"]

    def test_multiple_failures_are_reported_together(self):
        """Test that every failing required dimension is named."""
        splits = [
            master("m.apk"),
            split("x86.apk", abi=targeting_value(abis("x86"))),
            *group("device_tier", "tier", [1, 2]),
        ]

        with pytest.raises(IncompatibleDeviceError) as exc_info:
            resolver_for(device()).resolve("base", DeliveryType.INSTALL_TIME, splits)

        assert exc_info.value.dimensions == ["ABI", "DEVICE_TIER"]

    def test_device_tier_default(self):
        """Test that the catalog default tier selects its split."""
        splits = [master("m.apk"), *group("device_tier", "tier", [0, 1])]

        resolved = resolver_for(device(), defaults={Dimension.DEVICE_TIER: "1"}).resolve(
            "base", DeliveryType.INSTALL_TIME, splits
        )

        assert [s.path for s in resolved.config_splits] == ["tier-1.apk"]

    def test_missing_master(self):
        """Test that a module without master split is a catalog defect."""
        with pytest.raises(MalformedCatalogError):
            resolver_for(device()).resolve("base", DeliveryType.INSTALL_TIME, group("language", "l", ["en"]))
