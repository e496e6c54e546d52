"""Well-known PlatformIO directories (core, cache, bundled environment)."""

from __future__ import annotations

import ntpath
import os
import posixpath
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


def is_windows(platform: str | None = None) -> bool:
    return (platform or sys.platform).startswith("win")


def path_module(platform: str | None = None):
    """Return ``ntpath`` or ``posixpath`` for the given ``sys.platform`` value."""
    return ntpath if is_windows(platform) else posixpath


@dataclass(frozen=True)
class CoreDirs:
    core_dir: str
    cache_dir: str
    env_dir: str
    env_bin_dir: str
    home_dir: str


def get_core_dir(environ: Mapping[str, str] | None = None, platform: str | None = None) -> str:
    environ = os.environ if environ is None else environ
    override = environ.get("PLATFORMIO_CORE_DIR")
    if override:
        return override
    return path_module(platform).join(str(Path.home()), ".platformio")


def resolve_core_dirs(environ: Mapping[str, str] | None = None, platform: str | None = None) -> CoreDirs:
    pm = path_module(platform)
    core_dir = get_core_dir(environ, platform)
    env_dir = pm.join(core_dir, "penv")
    return CoreDirs(
        core_dir=core_dir,
        cache_dir=pm.join(core_dir, ".cache"),
        env_dir=env_dir,
        env_bin_dir=pm.join(env_dir, "Scripts" if is_windows(platform) else "bin"),
        home_dir=core_dir,
    )


def ensure_cache_dir(dirs: CoreDirs | None = None) -> str:
    dirs = dirs or resolve_core_dirs()
    os.makedirs(dirs.cache_dir, exist_ok=True)
    return dirs.cache_dir
