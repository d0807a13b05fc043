from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .exceptions import ConfigurationError
from .generator import DEFAULT_NAME

log = logging.getLogger(__name__)


CONFIG_FILENAMES_TOML = ("goblet.toml",)
CONFIG_FILENAMES_YAML = ("goblet.yaml", "goblet.yml")
DEFAULT_CONFIG_DIR_UNIX = Path.home() / ".config" / "goblet"


@dataclass(frozen=True)
class GeneratorConfig:
    name: str = DEFAULT_NAME
    out: Optional[Path] = None
    expressions: Tuple[str, ...] = ()
    ignore_dotfiles: bool = False
    exclude_empty_dir: bool = False


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    prefix: str = ""
    ignored_prefix: str = ""
    advertise: bool = False  # register an _http._tcp service via zeroconf


@dataclass(frozen=True)
class AppConfig:
    base_dir: Path
    logs_dir: Path
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    debug: bool = False
    source: Optional[Path] = None


def _find_config_file(explicit: Optional[Path]) -> Optional[Path]:
    if explicit is not None:
        if not explicit.exists():
            raise ConfigurationError(f"Configuration file '{explicit}' does not exist.")
        return explicit

    env_path = os.environ.get("GOBLET_CONFIG")
    if env_path:
        p = Path(env_path)
        if p.exists():
            return p

    for directory in (Path.cwd(), DEFAULT_CONFIG_DIR_UNIX):
        for name in (*CONFIG_FILENAMES_TOML, *CONFIG_FILENAMES_YAML):
            candidate = directory / name
            if candidate.exists():
                return candidate

    return None


def _read_toml(p: Path) -> Dict[str, Any]:
    with p.open("rb") as f:
        return tomllib.load(f)


def _read_yaml(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML config must be a mapping at top-level: {p}")
    return data


def _read(p: Path) -> Dict[str, Any]:
    suffix = p.suffix.lower()
    try:
        if suffix == ".toml":
            return _read_toml(p)
        if suffix in {".yaml", ".yml"}:
            return _read_yaml(p)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to parse configuration '{p}': {exc}") from exc
    raise ConfigurationError(f"Unsupported configuration format '{suffix}'. Use TOML or YAML.")


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping.")
    return value


def _to_path(value: Optional[str | os.PathLike[str]], *, base_dir: Path) -> Optional[Path]:
    if value is None:
        return None
    p = Path(value)
    if not p.is_absolute():
        p = (base_dir / p).resolve()
    return p


def load_config(*, config_path: Optional[Path] = None, base_dir: Optional[Path] = None) -> AppConfig:
    """Resolve configuration from a TOML/YAML file on top of the defaults.

    Relative paths inside the file are resolved against ``base_dir``
    (the current directory when omitted).
    """

    base_dir = (base_dir or Path.cwd()).resolve()

    file_path = _find_config_file(config_path)
    raw: Dict[str, Any] = {}
    if file_path is not None:
        raw = _read(file_path)
        log.debug("Loaded config from %s", file_path)

    raw_generator = _section(raw, "generator")
    raw_server = _section(raw, "server")
    raw_paths = _section(raw, "paths")

    defaults = GeneratorConfig()
    expressions = raw_generator.get("expressions", [])
    if isinstance(expressions, str):
        expressions = [expressions]
    generator = GeneratorConfig(
        name=str(raw_generator.get("name", defaults.name)),
        out=_to_path(raw_generator.get("out"), base_dir=base_dir),
        expressions=tuple(str(e) for e in expressions),
        ignore_dotfiles=bool(raw_generator.get("ignore_dotfiles", defaults.ignore_dotfiles)),
        exclude_empty_dir=bool(raw_generator.get("exclude_empty_dir", defaults.exclude_empty_dir)),
    )

    default_server = ServerConfig()
    try:
        port = int(raw_server.get("port", default_server.port))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid server port: {raw_server.get('port')!r}") from exc
    server = ServerConfig(
        host=str(raw_server.get("host", default_server.host)),
        port=port,
        prefix=str(raw_server.get("prefix", default_server.prefix)),
        ignored_prefix=str(raw_server.get("ignored_prefix", default_server.ignored_prefix)),
        advertise=bool(raw_server.get("advertise", default_server.advertise)),
    )
    if server.prefix and server.ignored_prefix:
        raise ConfigurationError("'prefix' and 'ignored_prefix' cannot both be set.")

    logs_dir = _to_path(raw_paths.get("logs"), base_dir=base_dir) or base_dir / "logs"

    return AppConfig(
        base_dir=base_dir,
        logs_dir=logs_dir,
        generator=generator,
        server=server,
        debug=bool(raw.get("debug", False)),
        source=file_path,
    )
