from __future__ import annotations

import asyncio
import importlib.util
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer

from . import __version__
from .config import AppConfig, load_config
from .exceptions import GobletError
from .filesystem import FileSystem, new_fs
from .generator import generate as generate_module
from .generator import scan
from .logging_setup import setup_logging
from .server import run_server

app = typer.Typer(help="Embed a directory tree and serve it from memory.")
config_app = typer.Typer(help="Inspect the resolved configuration.")


@dataclass
class State:
    config: AppConfig


def _fail(exc: GobletError) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@app.callback()
def _load_config(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration file (TOML or YAML). Overrides discovery.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    try:
        cfg = load_config(config_path=config)
    except GobletError as exc:
        raise _fail(exc) from exc
    setup_logging(debug=debug or cfg.debug, logs_dir=cfg.logs_dir if cfg.source else None)
    ctx.obj = State(config=cfg)


@app.command(name="version")
def version() -> None:
    """Print version information."""
    typer.echo(__version__)


@app.command(name="generate")
def generate(
    ctx: typer.Context,
    root: Path = typer.Argument(..., help="Directory to embed."),
    expression: Optional[List[str]] = typer.Option(
        None, "--expression", "-e", help="Regular expressions you want files to contain."
    ),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Variable name for the output assets."),
    out: Optional[Path] = typer.Option(
        None, "--out", "-o", help="Output file name. The module is printed to stdout when omitted."
    ),
    ignore_dotfiles: bool = typer.Option(
        False, "--ignore-dotfiles", help="Ignore dotfiles (i.e. '.gitkeep')."
    ),
    exclude_empty_dir: bool = typer.Option(
        False, "--exclude-empty-dir", help="Ignore empty directories."
    ),
) -> None:
    """Scan ROOT and render its files as an importable Python module."""
    assert isinstance(ctx.obj, State)
    defaults = ctx.obj.config.generator
    try:
        source = generate_module(
            root,
            out=out or defaults.out,
            name=name or defaults.name,
            expressions=expression or defaults.expressions,
            ignore_dotfiles=ignore_dotfiles or defaults.ignore_dotfiles,
            exclude_empty_dir=exclude_empty_dir or defaults.exclude_empty_dir,
        )
    except GobletError as exc:
        raise _fail(exc) from exc
    if not (out or defaults.out):
        typer.echo(source, nl=False)


def load_bundle(path: Path, name: str) -> FileSystem:
    """Import a generated module from ``path`` and return its ``name`` attribute."""
    spec = importlib.util.spec_from_file_location(f"_goblet_bundle_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise typer.BadParameter(f"Unable to load module from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    fs = getattr(module, name, None)
    if not isinstance(fs, FileSystem):
        raise typer.BadParameter(f"{path} does not define a FileSystem named '{name}'")
    return fs


@app.command(name="serve")
def serve(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, help="Directory to embed or a generated module file."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Variable name inside a generated module."),
    host: Optional[str] = typer.Option(None, help="Server bind host. Overrides config."),
    port: Optional[int] = typer.Option(None, help="Server bind port. Overrides config."),
    prefix: Optional[str] = typer.Option(None, help="URL prefix stripped before lookup."),
    ignored_prefix: Optional[str] = typer.Option(None, help="Prefix prepended before lookup."),
    advertise: Optional[bool] = typer.Option(
        None, "--advertise/--no-advertise", help="Register a Zeroconf/mDNS service for discovery."
    ),
) -> None:
    """Serve SOURCE over HTTP straight from memory."""
    assert isinstance(ctx.obj, State)
    cfg = ctx.obj.config.server
    path_prefix = cfg.prefix if prefix is None else prefix
    extra_prefix = cfg.ignored_prefix if ignored_prefix is None else ignored_prefix
    if path_prefix and extra_prefix:
        raise typer.BadParameter("--prefix and --ignored-prefix are mutually exclusive")

    try:
        if source.is_dir():
            gen = ctx.obj.config.generator
            fs = new_fs(
                *scan(
                    source,
                    expressions=gen.expressions,
                    ignore_dotfiles=gen.ignore_dotfiles,
                    exclude_empty_dir=gen.exclude_empty_dir,
                )
            )
        else:
            fs = load_bundle(source, name or ctx.obj.config.generator.name)
    except GobletError as exc:
        raise _fail(exc) from exc

    if path_prefix:
        fs = fs.with_prefix(path_prefix)
    elif extra_prefix:
        fs = fs.with_ignored_prefix(extra_prefix)

    h = host or cfg.host
    p = cfg.port if port is None else port
    typer.echo(f"Serving {source} on http://{h}:{p}/ (press Ctrl+C to stop)...")

    try:
        asyncio.run(run_server(fs, h, p, advertise=cfg.advertise if advertise is None else advertise))
    except KeyboardInterrupt:
        typer.echo("Shutting down...")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the resolved configuration values."""
    assert isinstance(ctx.obj, State)
    cfg = ctx.obj.config
    lines = [
        f"source: {cfg.source or '<defaults>'}",
        f"debug: {cfg.debug}",
        f"logs_dir: {cfg.logs_dir}",
        "generator:",
        f"  name: {cfg.generator.name}",
        f"  out: {cfg.generator.out or '<stdout>'}",
        f"  expressions: {', '.join(cfg.generator.expressions) or '<none>'}",
        f"  ignore_dotfiles: {cfg.generator.ignore_dotfiles}",
        f"  exclude_empty_dir: {cfg.generator.exclude_empty_dir}",
        "server:",
        f"  host: {cfg.server.host}",
        f"  port: {cfg.server.port}",
        f"  prefix: {cfg.server.prefix}",
        f"  ignored_prefix: {cfg.server.ignored_prefix}",
        f"  advertise: {cfg.server.advertise}",
    ]
    for line in lines:
        typer.echo(line)


app.add_typer(config_app, name="config")
