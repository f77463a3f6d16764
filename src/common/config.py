"""Package-manager configuration loading.

Reads ``.cargo/config.toml`` files from the working directory upward, then
``$CARGO_HOME/config.toml``, and applies ``--config`` overrides last. Closer
files take precedence over ones further up the tree.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from constants import Constants
from errors import UsageError

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore

logger = logging.getLogger(__name__)


def default_cargo_home(env: Mapping[str, str]) -> Path:
    """Return ``$CARGO_HOME`` or ``~/.cargo``."""
    home = env.get(Constants.ENV_CARGO_HOME)
    if home:
        return Path(home)
    return Path.home() / ".cargo"


def read_toml(path: Path) -> Dict[str, Any]:
    """Load a TOML file, raising UsageError with the path on bad syntax."""
    try:
        with open(path, "rb") as fh:
            return toml.load(fh) or {}
    except toml.TOMLDecodeError as exc:
        raise UsageError(f"could not parse TOML configuration in `{path}`: {exc}") from exc


def deep_merge(dest: Dict[str, Any], src: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``src`` into ``dest`` recursively; ``src`` wins on conflicts."""
    for key, value in src.items():
        if isinstance(value, dict) and isinstance(dest.get(key), dict):
            deep_merge(dest[key], value)
        else:
            dest[key] = value
    return dest


def _anchor_paths(cfg: Dict[str, Any], config_path: Path) -> Dict[str, Any]:
    """Resolve relative ``[source.*]`` directory paths against the config's parent dir.

    Relative paths in a config file are relative to the directory containing
    the ``.cargo`` directory.
    """
    base = config_path.parent.parent
    for source in (cfg.get("source") or {}).values():
        if not isinstance(source, dict):
            continue
        for key in ("directory", "local-registry"):
            value = source.get(key)
            if isinstance(value, str) and not os.path.isabs(value):
                source[key] = str(base / value)
    return cfg


def discover_config_files(cwd: Path, cargo_home: Path) -> List[Path]:
    """Return config files ordered from lowest to highest precedence."""
    found: List[Path] = []
    for directory in [cwd, *cwd.parents]:
        for name in Constants.CONFIG_FILES:
            candidate = directory / Constants.CONFIG_DIR / name
            if candidate.is_file():
                found.append(candidate)
                break
    home_files = [cargo_home / name for name in Constants.CONFIG_FILES]
    for candidate in home_files:
        if candidate.is_file() and candidate not in found:
            found.append(candidate)
            break
    found.reverse()
    return found


def parse_cli_override(arg: str, cwd: Path) -> Dict[str, Any]:
    """Parse one ``--config`` value.

    ``KEY=VALUE`` is read as a TOML dotted-key assignment
    (``registries.mirror.index = "https://..."``); anything else is taken
    as the path of an extra config file.
    """
    if "=" in arg:
        try:
            return toml.loads(arg)
        except toml.TOMLDecodeError as exc:
            raise UsageError(
                f"failed to parse value from --config argument `{arg}` as a dotted key expression: {exc}"
            ) from exc
    path = Path(arg)
    if not path.is_absolute():
        path = cwd / path
    if not path.is_file():
        raise UsageError(
            f"--config argument `{arg}` was not a TOML dotted key expression (such as `build.jobs = 2`) or a file"
        )
    return _anchor_paths(read_toml(path), path)


def load_config(
    cwd: Path,
    cargo_home: Path,
    cli_overrides: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Load and merge all configuration sources for one invocation."""
    merged: Dict[str, Any] = {}
    for path in discover_config_files(cwd, cargo_home):
        logger.debug("Loading config file %s", path)
        deep_merge(merged, _anchor_paths(read_toml(path), path))
    for arg in cli_overrides or []:
        deep_merge(merged, parse_cli_override(arg, cwd))
    return merged


def get_dotted(cfg: Mapping[str, Any], dotted: str, default: Any = None) -> Any:
    """Look up ``a.b.c`` in nested mappings."""
    cur: Any = cfg
    for part in dotted.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return cur


def env_registry_key(name: str) -> str:
    """Environment variable infix for a registry name (``my-reg`` -> ``MY_REG``)."""
    return name.upper().replace("-", "_")
