"""Unit tests for reading device specs off connected devices."""

import pytest
import structlog

from apkset.core.config import ResolverConfig
from apkset.core.exceptions import InvalidInputError, ProtocolError
from apkset.services.device_analysis import (
    DeviceAnalyzer,
    parse_activity_manager_config,
    parse_config_locales,
    parse_features,
    parse_gl_extensions,
    parse_properties,
)
from apkset.services.device_spec import DeviceSpecLoader
from apkset.services.install import Device
from builders import device

PROPERTIES = {
    "ro.build.version.sdk": "30",
    "ro.build.version.codename": "REL",
    "ro.sf.lcd_density": "420",
    "ro.product.cpu.abilist": "arm64-v8a,armeabi-v7a,armeabi",
    "ro.opengles.version": "196610",
    "persist.sys.locale": "de-DE",
}

SURFACE_FLINGER = [
    "SurfaceFlinger global state:",
    "EGL implementation : 1.4",
    "GLES: Qualcomm, Adreno (TM) 640, OpenGL ES 3.2",
    "GL_OES_EGL_image GL_KHR_texture_compression_astc_ldr GL_EXT_texture_compression_s3tc",
]

ACTIVITY_MANAGER = [
    "abi: arm64-v8a,armeabi-v7a",
    "config: mcc310-mnc260-en-rUS,fr-rFR-ldltr-sw411dp-w411dp-h842dp-normal-long-port-560dpi-v30",
]


class FakeDevice(Device):
    """Device answering the analysis commands with canned output."""

    def __init__(self, properties=None, outputs=None):
        self.properties = PROPERTIES if properties is None else properties
        self.outputs = {
            "pm list features": [
                "feature:android.hardware.camera",
                "feature:reqGlEsVersion=0x30002",
            ],
            "dumpsys SurfaceFlinger": SURFACE_FLINGER,
            "am get-config": ACTIVITY_MANAGER,
            "wm density": ["Physical density: 480"],
        }
        self.outputs.update(outputs or {})
        self.commands = []
        self.bound_serials = []

    @property
    def serial(self):
        return "emulator-5554"

    async def shell(self, command, timeout):
        self.commands.append(command)
        self.bound_serials.append(structlog.contextvars.get_contextvars().get("serial"))
        if command == "getprop":
            return [f"[{key}]: [{value}]" for key, value in self.properties.items()]
        return self.outputs.get(command, [])

    async def push(self, local_path, timeout):
        raise AssertionError("analysis never pushes files")


class TestParsers:
    """Tests for the shell output parsers."""

    def test_parse_properties(self):
        """Test getprop line parsing, including empty values."""
        lines = ["[ro.build.version.sdk]: [30]", "[persist.sys.locale]: []", "garbage"]

        assert parse_properties(lines) == {"ro.build.version.sdk": "30", "persist.sys.locale": ""}

    def test_parse_features(self):
        """Test that only feature lines are kept."""
        assert parse_features(["feature:android.hardware.wifi", "", "reqGlEsVersion"]) == [
            "android.hardware.wifi"
        ]

    def test_parse_gl_extensions(self):
        """Test that extensions are read from the line after GLES."""
        assert parse_gl_extensions(SURFACE_FLINGER) == [
            "GL_OES_EGL_image",
            "GL_KHR_texture_compression_astc_ldr",
            "GL_EXT_texture_compression_s3tc",
        ]
        assert parse_gl_extensions(["GLES: no extension line"]) == []

    def test_parse_activity_manager_config(self):
        """Test ABI and locale extraction from am get-config."""
        abis, locales = parse_activity_manager_config(ACTIVITY_MANAGER)

        assert abis == ["arm64-v8a", "armeabi-v7a"]
        assert locales == ["en-US", "fr-FR"]

    @pytest.mark.parametrize(
        "config,expected",
        [
            ("mcc234-mnc15-en-port", ["en"]),
            ("mcc234-mnc15-b+sr+Latn+RS-port", ["sr-RS"]),
            ("mcc234-mnc15-b+zh+Hans-port", ["zh"]),
            ("mcc234-mnc15-car-port", []),
            ("mcc234-mnc15-port-v30", []),
        ],
    )
    def test_parse_config_locales(self, config, expected):
        """Test locale qualifiers, BCP-47 tags and the UI mode qualifier 'car'."""
        assert parse_config_locales(config) == expected


@pytest.mark.asyncio
class TestDeviceAnalyzer:
    """Tests for the device analyzer."""

    async def test_device_spec(self):
        """Test a device spec assembled from every source."""
        fake = FakeDevice()

        result = await DeviceAnalyzer(fake).get_device_spec()

        spec = result.data
        assert result.success
        assert not result.warnings
        assert spec.sdk_version == 30
        assert spec.screen_density == 420
        assert spec.supported_abis == ["arm64-v8a", "armeabi-v7a"]
        assert spec.supported_locales == ["en-US", "fr-FR"]
        assert spec.device_features == ["android.hardware.camera", "reqGlEsVersion=0x30002"]
        assert spec.gl_es_version == 0x30002
        assert spec.texture_compression_formats == ["ASTC", "S3TC", "ETC2"]
        assert spec.sdk_runtime_supported is False

    async def test_serial_bound_while_analyzing(self):
        """Test that the device serial is bound to log entries during analysis only."""
        fake = FakeDevice()

        await DeviceAnalyzer(fake).get_device_spec()

        assert set(fake.bound_serials) == {"emulator-5554"}
        assert "serial" not in structlog.contextvars.get_contextvars()

    async def test_preview_build(self):
        """Test that preview builds are matched one API level up."""
        properties = {**PROPERTIES, "ro.build.version.codename": "Tiramisu"}

        result = await DeviceAnalyzer(FakeDevice(properties)).get_device_spec()

        assert result.data.sdk_version == 31

    async def test_sdk_runtime_from_threshold(self):
        """Test that SDK runtime support follows the configured threshold."""
        config = ResolverConfig(sdk_runtime_min_sdk=30)
        analyzer = DeviceAnalyzer(FakeDevice(), resolver_config=config)

        result = await analyzer.get_device_spec()

        assert result.data.sdk_runtime_supported is True

    async def test_density_from_window_manager(self):
        """Test the wm density fallback when no density property is set."""
        properties = {k: v for k, v in PROPERTIES.items() if k != "ro.sf.lcd_density"}
        fake = FakeDevice(properties)

        result = await DeviceAnalyzer(fake).get_device_spec()

        assert result.data.screen_density == 480
        assert "wm density" in fake.commands

    async def test_locale_from_properties(self):
        """Test the property fallback when the activity manager reports no locale."""
        fake = FakeDevice(outputs={"am get-config": []})

        result = await DeviceAnalyzer(fake).get_device_spec()

        assert result.data.supported_locales == ["de-DE"]
        assert result.data.supported_abis == ["arm64-v8a", "armeabi-v7a", "armeabi"]

    async def test_legacy_locale_properties(self):
        """Test language and region properties below API 23."""
        properties = {
            **PROPERTIES,
            "ro.build.version.sdk": "22",
            "ro.product.locale.language": "pt",
            "ro.product.locale.region": "BR",
        }
        fake = FakeDevice(properties, outputs={"am get-config": []})

        result = await DeviceAnalyzer(fake).get_device_spec()

        assert result.data.supported_locales == ["pt-BR"]

    async def test_locale_fallback_warning(self):
        """Test that an undetectable locale falls back to en-US with a warning."""
        properties = {k: v for k, v in PROPERTIES.items() if k != "persist.sys.locale"}
        fake = FakeDevice(properties, outputs={"am get-config": []})

        result = await DeviceAnalyzer(fake).get_device_spec()

        assert result.data.supported_locales == ["en-US"]
        assert result.warnings == ["Can't detect device locale, will use 'en-US'."]

    async def test_missing_sdk_version(self):
        """Test that an unreadable SDK version is reported."""
        properties = {k: v for k, v in PROPERTIES.items() if k != "ro.build.version.sdk"}

        with pytest.raises(ProtocolError) as exc_info:
            await DeviceAnalyzer(FakeDevice(properties)).get_device_spec()

        assert "SDK version" in exc_info.value.message
        assert exc_info.value.serial == "emulator-5554"

    async def test_missing_density(self):
        """Test that an unreadable density is reported."""
        properties = {k: v for k, v in PROPERTIES.items() if k != "ro.sf.lcd_density"}
        fake = FakeDevice(properties, outputs={"wm density": ["Override density: 400"]})

        with pytest.raises(ProtocolError) as exc_info:
            await DeviceAnalyzer(fake).get_device_spec()

        assert "density" in exc_info.value.message

    async def test_missing_abis(self):
        """Test that a device reporting no ABI anywhere is rejected."""
        properties = {k: v for k, v in PROPERTIES.items() if k != "ro.product.cpu.abilist"}
        fake = FakeDevice(properties, outputs={"am get-config": []})

        with pytest.raises(ProtocolError) as exc_info:
            await DeviceAnalyzer(fake).get_device_spec()

        assert "ABIs" in exc_info.value.message


class TestDeviceSpecWriting:
    """Tests for writing device specs."""

    def test_written_spec_loads_back(self, temp_dir):
        """Test that a written spec loads into the same device profile."""
        spec = device(gl_es_version=0x30002, sdk_runtime_supported=True)
        loader = DeviceSpecLoader()

        path = loader.save(spec, temp_dir / "specs" / "device.json")

        assert '"sdkRuntime": {\n    "supported": true\n  }' in path.read_text()
        assert loader.load(path) == spec

    def test_existing_file_needs_overwrite(self, temp_dir):
        """Test that an existing file is only replaced on request."""
        path = temp_dir / "device.json"
        path.write_text("{}")
        loader = DeviceSpecLoader()

        with pytest.raises(InvalidInputError):
            loader.save(device(), path)

        loader.save(device(), path, overwrite=True)
        assert loader.load(path) == device()

    def test_json_extension_required(self, temp_dir):
        """Test that only .json outputs are accepted."""
        with pytest.raises(InvalidInputError) as exc_info:
            DeviceSpecLoader().save(device(), temp_dir / "device.txt")

        assert exc_info.value.field_name == "output"
