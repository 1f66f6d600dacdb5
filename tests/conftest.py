"""Test configuration for apkset."""

import io
import json
import tempfile
import zipfile
from pathlib import Path

import pytest

from builders import sample_catalog


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage(temp_dir):
    """Create a storage backend writing below the temporary directory.

    Returns:
        LocalStorageBackend: A local storage backend instance.
    """
    from apkset.storage import LocalStorageBackend
    return LocalStorageBackend(temp_dir / "out")


@pytest.fixture
def catalog():
    """The sample catalog shared by resolution tests."""
    return sample_catalog()


@pytest.fixture
def toc_json(catalog):
    """JSON table of contents of the sample catalog."""
    return catalog.model_dump_json(by_alias=True, exclude_none=True)


def _artifact_paths(catalog):
    paths = []
    for variant in catalog.variants:
        for module in variant.modules:
            paths.extend(s.path for s in module.splits + module.instant_splits)
    for asset in catalog.asset_slice_sets:
        paths.extend(s.path for s in asset.slices)
    return paths


@pytest.fixture
def apks_archive(temp_dir, catalog, toc_json):
    """Create an .apks archive holding the sample catalog and one entry per artifact.

    Every artifact's content is its own path, which lets tests check what was copied.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("toc.json", toc_json)
        for path in _artifact_paths(catalog):
            zf.writestr(path, path.encode())

    archive = temp_dir / "app.apks"
    archive.write_bytes(buffer.getvalue())
    return archive


@pytest.fixture
def apk_set_dir(temp_dir, catalog, toc_json):
    """Create an extracted APK Set directory holding the sample catalog."""
    root = temp_dir / "apkset"
    root.mkdir()
    (root / "toc.json").write_text(toc_json, encoding="utf-8")
    for path in _artifact_paths(catalog):
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(path.encode())
    return root


@pytest.fixture
def device_spec_file(temp_dir):
    """Write a full JSON device spec file."""
    spec = {
        "supportedAbis": ["arm64-v8a", "armeabi-v7a"],
        "supportedLocales": ["en-US", "fr-FR"],
        "screenDensity": 420,
        "sdkVersion": 30,
    }
    path = temp_dir / "device.json"
    path.write_text(json.dumps(spec), encoding="utf-8")
    return path
