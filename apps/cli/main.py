"""Typer CLI entrypoint for reclass-resolver."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, NoReturn, cast

import typer

from apps.cli.io import OutputFormat, render_payload, write_text_atomic
from reclass_resolver.config.loader import DEFAULT_CONFIG_FILE, config_from_dict, load_config
from reclass_resolver.config.models import Config
from reclass_resolver.inventory.builder import Reclass
from reclass_resolver.utils.errors import ConfigError, DiscoveryError, ReclassError

app = typer.Typer(help="Hierarchical class-based inventory resolver", rich_markup_mode=None)

EXIT_SETUP_ERROR = 1
EXIT_RESOLUTION_ERROR = 2

InventoryPathOption = Annotated[
    Path,
    typer.Option("--inventory-path", exists=True, file_okay=False, dir_okay=True),
]
ConfigFileOption = Annotated[
    str | None,
    typer.Option(
        "--config-file",
        help=f"Config file relative to the inventory path (default: {DEFAULT_CONFIG_FILE}).",
    ),
]
FormatOption = Annotated[str, typer.Option("--format", help="Output format: yaml or json.")]
OutputOption = Annotated[
    Path | None, typer.Option("--output", help="Write output to this file instead of stdout.")
]
CompatFlagOption = Annotated[
    list[str] | None,
    typer.Option("--compat-flag", help="Enable a compatibility flag, may be repeated."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", help="Enable debug logging.")]


@app.callback()
def cli_callback() -> None:
    """Resolve reclass inventories."""


@app.command("inventory")
def inventory_command(
    inventory_path: InventoryPathOption = Path("."),
    config_file: ConfigFileOption = None,
    output_format: FormatOption = "yaml",
    output: OutputOption = None,
    compat_flag: CompatFlagOption = None,
    verbose: VerboseOption = False,
    workers: Annotated[
        int, typer.Option("--workers", min=1, help="Number of nodes rendered in parallel.")
    ] = 1,
) -> None:
    """Render the full inventory with class and application indexes."""

    _configure_logging(verbose)
    fmt = _check_format(output_format)
    reclass = _build_reclass(inventory_path, config_file, compat_flag)
    try:
        payload = reclass.build_inventory(max_workers=workers).as_flat_map()
    except ReclassError as exc:
        _fail(exc)
    _emit(render_payload(payload, fmt), output)


@app.command("nodeinfo")
def nodeinfo_command(
    node: Annotated[str, typer.Argument(help="Full node name.")],
    inventory_path: InventoryPathOption = Path("."),
    config_file: ConfigFileOption = None,
    output_format: FormatOption = "yaml",
    output: OutputOption = None,
    compat_flag: CompatFlagOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Render the resolved view of a single node."""

    _configure_logging(verbose)
    fmt = _check_format(output_format)
    reclass = _build_reclass(inventory_path, config_file, compat_flag)
    try:
        payload = reclass.resolve_node(node).as_dict()
    except ReclassError as exc:
        _fail(exc)
    _emit(render_payload(payload, fmt), output)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _check_format(output_format: str) -> OutputFormat:
    normalized = output_format.lower().strip()
    if normalized not in {"yaml", "json"}:
        typer.echo("ERROR: --format must be one of: yaml, json.", err=True)
        raise typer.Exit(code=EXIT_SETUP_ERROR)
    return cast(OutputFormat, normalized)


def _load_config(inventory_path: Path, config_file: str | None) -> Config:
    if config_file is not None:
        return load_config(inventory_path, config_file)
    if (inventory_path / DEFAULT_CONFIG_FILE).is_file():
        return load_config(inventory_path, DEFAULT_CONFIG_FILE)
    return config_from_dict(inventory_path, {})


def _build_reclass(
    inventory_path: Path, config_file: str | None, compat_flags: list[str] | None
) -> Reclass:
    try:
        config = _load_config(inventory_path, config_file)
        for flag in compat_flags or []:
            config = config.with_compat_flag(flag)
        return Reclass(config)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=EXIT_SETUP_ERROR) from exc
    except ReclassError as exc:
        _fail(exc)


def _fail(exc: ReclassError) -> NoReturn:
    typer.echo(f"ERROR: {exc.message}", err=True)
    if isinstance(exc, (ConfigError, DiscoveryError)):
        raise typer.Exit(code=EXIT_SETUP_ERROR) from exc
    raise typer.Exit(code=EXIT_RESOLUTION_ERROR) from exc


def _emit(text: str, output: Path | None) -> None:
    if output is None:
        typer.echo(text, nl=False)
        return
    write_text_atomic(output, text)
    typer.echo(f"INFO: wrote {output}", err=True)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
