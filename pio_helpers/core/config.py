from __future__ import annotations

"""Settings for pio-helpers.

Supports a project-level TOML file and environment variable overrides.

Priority: CLI > env vars > config file > code defaults.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import os


def _find_project_root(start: Path) -> Path:
    cur = start.resolve()
    for p in [cur] + list(cur.parents):
        if (p / ".git").exists() or (p / "pyproject.toml").exists():
            return p
    return cur


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        import tomllib

        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, ValueError):
        return {}


def load_helper_config(start: Path) -> dict[str, Any]:
    root = _find_project_root(start)
    candidates = [root / ".pio-helpers.toml", root / "pio-helpers.toml"]
    for c in candidates:
        if c.exists():
            cfg = _load_toml(c)
            if isinstance(cfg, dict):
                return cfg.get("pio_helpers", cfg)
    return {}


def env_override_bool(
    env_name: str, default: Optional[bool], environ: Mapping[str, str] | None = None
) -> Optional[bool]:
    val = (os.environ if environ is None else environ).get(env_name)
    if val is None:
        return default
    v = val.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def env_override_int(
    env_name: str, default: Optional[int], environ: Mapping[str, str] | None = None
) -> Optional[int]:
    val = (os.environ if environ is None else environ).get(env_name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


@dataclass
class HelperSettings:
    caller: str = "cli"
    use_builtin_core: bool = True
    extra_path: Optional[str] = None
    extra_vars: dict[str, str] = field(default_factory=dict)
    extra_dirs: list[str] = field(default_factory=list)
    http_timeout: int = 15


def load_settings(
    start: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    **cli: Any,
) -> HelperSettings:
    """Merge defaults, the TOML file, ``PIO_HELPERS_*`` variables and CLI values.

    CLI values equal to ``None`` are treated as "not given".
    """
    environ = os.environ if environ is None else environ
    cfg = load_helper_config(start or Path.cwd())
    settings = HelperSettings()

    if isinstance(cfg.get("caller"), str):
        settings.caller = cfg["caller"]
    if isinstance(cfg.get("use_builtin_core"), bool):
        settings.use_builtin_core = cfg["use_builtin_core"]
    if isinstance(cfg.get("extra_path"), str):
        settings.extra_path = cfg["extra_path"]
    if isinstance(cfg.get("extra_vars"), dict):
        settings.extra_vars = {str(k): str(v) for k, v in cfg["extra_vars"].items()}
    if isinstance(cfg.get("extra_dirs"), list):
        settings.extra_dirs = [str(d) for d in cfg["extra_dirs"]]
    if isinstance(cfg.get("http_timeout"), int):
        settings.http_timeout = cfg["http_timeout"]

    settings.caller = environ.get("PIO_HELPERS_CALLER") or settings.caller
    settings.use_builtin_core = bool(
        env_override_bool("PIO_HELPERS_USE_BUILTIN_CORE", settings.use_builtin_core, environ)
    )
    settings.extra_path = environ.get("PIO_HELPERS_EXTRA_PATH") or settings.extra_path
    settings.http_timeout = env_override_int("PIO_HELPERS_HTTP_TIMEOUT", settings.http_timeout, environ) or 15

    for name, value in cli.items():
        if value is None:
            continue
        if name == "extra_vars":
            settings.extra_vars = {**settings.extra_vars, **value}
        elif hasattr(settings, name):
            setattr(settings, name, value)
    return settings
