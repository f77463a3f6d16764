"""Per-invocation context passed explicitly to every component."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from common.config import default_cargo_home, env_registry_key, get_dotted, load_config
from constants import Constants
from errors import UsageError


class Verbosity(Enum):
    """Output verbosity selected on the command line."""
    QUIET = "quiet"
    NORMAL = "normal"
    VERBOSE = "verbose"


@dataclass
class GlobalContext:
    """Configuration and environment for a single invocation.

    Built once by the entrypoint and never mutated afterwards.
    """
    cwd: Path
    cargo_home: Path
    config: Dict[str, Any] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    verbosity: Verbosity = Verbosity.NORMAL
    color: str = "auto"
    frozen: bool = False
    locked: bool = False
    offline: bool = False
    unstable_flags: List[str] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        config_args: Optional[List[str]] = None,
        **options: Any,
    ) -> "GlobalContext":
        """Discover configuration files and assemble a context."""
        env = dict(os.environ if env is None else env)
        cwd = Path(cwd or Path.cwd())
        cargo_home = default_cargo_home(env)
        config = load_config(cwd, cargo_home, config_args)
        ctx = cls(cwd=cwd, cargo_home=cargo_home, config=config, env=env, **options)
        if ctx.frozen:
            ctx.offline = True
        if get_dotted(config, "net.offline") is True:
            ctx.offline = True
        return ctx

    def get(self, dotted: str, default: Any = None) -> Any:
        """Read a configuration value by dotted key."""
        return get_dotted(self.config, dotted, default)

    def registry_index(self, name: str) -> str:
        """Index URL of the named registry, from env or ``[registries.NAME]``."""
        if name == Constants.CRATES_IO_REGISTRY:
            return Constants.CRATES_IO_INDEX
        env_key = f"{Constants.ENV_REGISTRIES_PREFIX}{env_registry_key(name)}_INDEX"
        index = self.env.get(env_key) or self.get(f"registries.{name}.index")
        if not index:
            raise UsageError(f"registry index was not found in any configuration: `{name}`")
        return index

    def crates_io_protocol(self) -> str:
        """``sparse`` unless the user opted back into the git index."""
        env_key = f"{Constants.ENV_REGISTRIES_PREFIX}CRATES_IO_PROTOCOL"
        protocol = self.env.get(env_key) or self.get("registries.crates-io.protocol") or "sparse"
        if protocol not in ("git", "sparse"):
            raise UsageError(f"unsupported registry protocol `{protocol}` (defined in registries.crates-io.protocol)")
        return protocol

    @property
    def verbose(self) -> bool:
        return self.verbosity == Verbosity.VERBOSE
