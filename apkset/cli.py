"""
apkset CLI.

Command-line interface for resolving, extracting, sizing and installing APK Sets,
and for reading device specs off connected devices.
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.config import Config, get_config
from .core.exceptions import ApkSetError, InvalidInputError
from .core.logging import setup_logging
from .models.device import DeviceProfile
from .models.result import ResolutionResult
from .models.targeting import Dimension
from .resolution import ApkSetAssembler
from .services.catalog import CatalogLoader
from .services.device_spec import DeviceSpecLoader

app = typer.Typer(
    name="apkset",
    help="Device-targeting resolution for Android APK Sets",
    add_completion=False,
)

size_app = typer.Typer(help="Compute download sizes of an APK Set")
app.add_typer(size_app, name="get-size")

console = Console()

APK_SET_ARGUMENT = typer.Argument(
    ...,
    help="Path to the .apks archive or extracted APK Set directory",
    exists=True,
    file_okay=True,
    dir_okay=True,
    resolve_path=True,
)
DEVICE_SPEC_OPTION = typer.Option(
    ...,
    "--device-spec",
    "-d",
    help="JSON device spec file",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)
MODULES_OPTION = typer.Option(
    None,
    "--modules",
    "-m",
    help="Comma-separated module names; _ALL_ selects every module",
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"apkset v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """apkset: pick the APKs a device needs from an APK Set."""


def _setup(verbose: bool) -> Config:
    config = get_config()
    if verbose:
        config.log_level = "DEBUG"
    setup_logging(config)
    return config


def _parse_modules(modules: Optional[str]) -> Optional[list[str]]:
    if modules is None:
        return None
    return [name.strip() for name in modules.split(",") if name.strip()]


def _parse_dimensions(dimensions: Optional[str]) -> list[Dimension]:
    if dimensions is None:
        return []
    names = [name.strip().upper() for name in dimensions.split(",") if name.strip()]
    if "ALL" in names:
        return list(Dimension)
    try:
        return [Dimension(name) for name in names]
    except ValueError as e:
        raise InvalidInputError(
            message=(
                f"Unknown dimension in '{dimensions}'; expected ALL or any of "
                f"{[d.value for d in Dimension]}."
            ),
            field_name="dimensions",
            cause=e,
        )


def _fail(error: ApkSetError) -> None:
    console.print(f"\n[bold red]✗ {type(error).__name__}[/bold red]")
    console.print(f"Error: {error}")
    raise typer.Exit(1)


def _resolve(
    config: Config,
    apk_set: Path,
    device_spec: Path,
    modules: Optional[str],
    instant: bool,
) -> tuple[ApkSetAssembler, ResolutionResult]:
    catalog = CatalogLoader(config.resolver).load(apk_set)
    device = DeviceSpecLoader().load(device_spec, partial=True)
    assembler = ApkSetAssembler(catalog, config.resolver, validate=False)
    result = assembler.resolve(device, modules=_parse_modules(modules), instant=instant)
    return assembler, result


def _print_result(assembler: ApkSetAssembler, result: ResolutionResult) -> None:
    table = Table(title=f"{assembler.catalog.package_name} (variant {result.variant_number})")
    table.add_column("#", style="dim")
    table.add_column("Module", style="cyan")
    table.add_column("Delivery")
    table.add_column("Artifact", style="green")

    for index, artifact in enumerate(result.artifacts, start=1):
        path = f"[bold]{artifact.path}[/bold]" if artifact.is_master else artifact.path
        table.add_row(str(index), artifact.module_name, artifact.delivery_type.value, path)

    console.print(table)


@app.command()
def resolve(
    apk_set: Path = APK_SET_ARGUMENT,
    device_spec: Path = DEVICE_SPEC_OPTION,
    modules: Optional[str] = MODULES_OPTION,
    instant: bool = typer.Option(False, "--instant", help="Resolve instant APKs"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Print the artifacts a device needs, in install order."""
    config = _setup(verbose)
    try:
        assembler, result = _resolve(config, apk_set, device_spec, modules, instant)
    except ApkSetError as e:
        _fail(e)
        return

    if as_json:
        console.print_json(result.model_dump_json(by_alias=True, exclude_none=True))
    else:
        _print_result(assembler, result)


@app.command()
def extract(
    apk_set: Path = APK_SET_ARGUMENT,
    device_spec: Path = DEVICE_SPEC_OPTION,
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Directory extracted APKs are written to",
    ),
    modules: Optional[str] = MODULES_OPTION,
    instant: bool = typer.Option(False, "--instant", help="Extract instant APKs"),
    include_metadata: bool = typer.Option(
        False, "--include-metadata", help="Write metadata.json next to the APKs"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Extract the artifacts a device needs."""
    config = _setup(verbose)
    destination = output_dir or config.storage.base_path

    async def run_async() -> None:
        from .services.extraction import ApkExtractionService, ExtractionInput
        from .storage import LocalStorageBackend

        assembler, result = _resolve(config, apk_set, device_spec, modules, instant)
        service = ApkExtractionService(LocalStorageBackend(destination))
        extraction = await service.extract(
            ExtractionInput(
                apk_set_path=apk_set,
                result=result,
                metadata=assembler.metadata(result) if include_metadata else None,
            )
        )

        console.print("\n[bold green]✓ Extraction complete![/bold green]\n")
        for path in extraction.data.extracted_paths:
            console.print(f"  • {path}")
        if extraction.data.metadata_path:
            console.print(f"\n[bold]Metadata:[/bold] {extraction.data.metadata_path}")
        for warning in extraction.warnings:
            console.print(f"[yellow]Warning: {warning}[/yellow]")

    try:
        asyncio.run(run_async())
    except ApkSetError as e:
        _fail(e)


@app.command()
def install(
    apk_set: Path = APK_SET_ARGUMENT,
    device_spec: Path = DEVICE_SPEC_OPTION,
    modules: Optional[str] = MODULES_OPTION,
    serial: Optional[str] = typer.Option(
        None, "--serial", "-s", help="Serial of the target device"
    ),
    allow_downgrade: bool = typer.Option(False, "--allow-downgrade", help="Allow version downgrade"),
    allow_test_only: bool = typer.Option(False, "--allow-test-only", help="Allow test-only APKs"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Resolve an APK Set for a device spec and install it through adb."""
    config = _setup(verbose)

    console.print(Panel.fit(
        f"[bold blue]apkset install[/bold blue]\n{apk_set}",
        border_style="blue",
    ))

    async def run_async() -> None:
        from .services.extraction import ApkExtractionService, ExtractionInput
        from .services.install import AdbDevice, InstallSessionService
        from .storage import LocalStorageBackend

        assembler, result = _resolve(config, apk_set, device_spec, modules, instant=False)
        device = AdbDevice(config.adb, serial=serial)

        with tempfile.TemporaryDirectory(prefix="apkset-") as tmp:
            extraction = await ApkExtractionService(LocalStorageBackend(Path(tmp))).extract(
                ExtractionInput(apk_set_path=apk_set, result=result, reject_name_clashes=True)
            )
            installed = await InstallSessionService(device, config.adb).install(
                extraction.data.extracted_paths,
                assembler.catalog.package_name,
                allow_downgrade=allow_downgrade,
                allow_test_only=allow_test_only,
            )

        console.print(
            f"\n[bold green]✓ Installed {len(result.artifacts)} APKs[/bold green] "
            f"(session {installed.data.session_id})"
        )

    try:
        asyncio.run(run_async())
    except ApkSetError as e:
        _fail(e)


@size_app.command("total")
def get_size_total(
    apk_set: Path = APK_SET_ARGUMENT,
    device_spec: Optional[Path] = typer.Option(
        None,
        "--device-spec",
        "-d",
        help="Partial JSON device spec; dimensions it leaves out are expanded",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    dimensions: Optional[str] = typer.Option(
        None,
        "--dimensions",
        help="Comma-separated dimensions to break sizes down by, or ALL",
    ),
    modules: Optional[str] = MODULES_OPTION,
    instant: bool = typer.Option(False, "--instant", help="Size instant APKs"),
    human_readable: bool = typer.Option(
        False, "--human-readable-sizes", help="Print sizes in KB, MB or GB"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Print the min and max download size per device configuration as CSV."""
    from .services.size import ApkSetSizeService, SizeInput

    config = _setup(verbose)
    try:
        catalog = CatalogLoader(config.resolver).load(apk_set)
        device = (
            DeviceSpecLoader().load(device_spec, partial=True)
            if device_spec is not None
            else DeviceProfile(sdk_version=0)
        )
        result = ApkSetSizeService(config.resolver).get_size_total(
            SizeInput(
                apk_set_path=apk_set,
                catalog=catalog,
                device=device,
                dimensions=_parse_dimensions(dimensions),
                modules=_parse_modules(modules),
                instant=instant,
            )
        )
    except ApkSetError as e:
        _fail(e)
        return

    typer.echo(result.data.to_csv(human_readable), nl=False)


@app.command("get-device-spec")
def get_device_spec(
    output: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Path of the .json device spec to write",
        dir_okay=False,
        resolve_path=True,
    ),
    serial: Optional[str] = typer.Option(
        None, "--serial", "-s", help="Serial of the connected device"
    ),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing file"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Read the device spec of a connected device through adb."""
    config = _setup(verbose)
    loader = DeviceSpecLoader()

    async def run_async() -> None:
        from .services.device_analysis import DeviceAnalyzer
        from .services.install import AdbDevice

        loader.check_output(output, overwrite)
        device = AdbDevice(config.adb, serial=serial)
        analysis = await DeviceAnalyzer(device, config.adb, config.resolver).get_device_spec()
        path = loader.save(analysis.data, output, overwrite=overwrite)

        for warning in analysis.warnings:
            console.print(f"[yellow]Warning: {warning}[/yellow]")
        console.print_json(loader.dump(analysis.data))
        console.print(f"\n[bold green]✓ Device spec written to[/bold green] {path}")

    try:
        asyncio.run(run_async())
    except ApkSetError as e:
        _fail(e)


@app.command()
def config() -> None:
    """Show the current configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Max Schema Major", str(cfg.resolver.max_schema_major_version))
    table.add_row("Install-Time Assets", str(cfg.resolver.include_install_time_asset_modules))
    table.add_row("SDK Runtime From SDK", str(cfg.resolver.sdk_runtime_min_sdk))
    table.add_row("adb Path", str(cfg.adb.adb_path or "auto"))
    table.add_row("Device Serial", cfg.adb.serial or "default")
    table.add_row("adb Timeout", f"{cfg.adb.command_timeout_seconds:.0f}s")
    table.add_row("Enable Rollback", str(cfg.adb.enable_rollback))
    table.add_row("Output Path", str(cfg.storage.base_path))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  APKSET_LOG_LEVEL, APKSET_MAX_SCHEMA_MAJOR, APKSET_INSTALL_TIME_ASSETS")
    console.print("  APKSET_ADB_PATH, ANDROID_SERIAL, APKSET_ADB_TIMEOUT, APKSET_ENABLE_ROLLBACK")
    console.print("  APKSET_OUTPUT_PATH")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
