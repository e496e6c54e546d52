"""Normalize the process environment before PlatformIO tools are launched."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping, MutableMapping

from ..core.paths import CoreDirs, path_module, resolve_core_dirs

logger = logging.getLogger(__name__)

# Callers that cannot render ANSI progress bars
NO_PROGRESSBAR_CALLERS = ("atom",)


def split_path(value: str | None, platform: str | None = None) -> list[str]:
    if not value:
        return []
    return [p for p in value.split(path_module(platform).pathsep) if p]


def join_path(segments: list[str], platform: str | None = None) -> str:
    return path_module(platform).pathsep.join(s for s in segments if s)


def _is_within(segment: str, directory: str, platform: str | None = None) -> bool:
    pm = path_module(platform)
    seg = pm.normcase(pm.normpath(segment.strip('"')))
    root = pm.normcase(pm.normpath(directory))
    return seg == root or seg.startswith(root.rstrip(pm.sep) + pm.sep)


def _has_segment(segments: list[str], entry: str, platform: str | None = None) -> bool:
    pm = path_module(platform)
    wanted = pm.normcase(pm.normpath(entry))
    return any(pm.normcase(pm.normpath(s)) == wanted for s in segments)


def compute_environ(
    current: Mapping[str, str],
    caller: str,
    use_builtin_core: bool = True,
    extra_path: str | None = None,
    extra_vars: Mapping[str, str] | None = None,
    *,
    platform: str | None = None,
    dirs: CoreDirs | None = None,
) -> dict[str, str]:
    """Return a normalized copy of ``current``; the input is left untouched.

    PATH ends up as ``[extra_path] + [bundled bin, bundled env] + existing`` when
    the bundled core is used. Without it, every segment inside the bundled
    environment directory is dropped. A Windows ``Path`` variant is merged in
    first and then kept equal to ``PATH``.
    """
    env = dict(current)
    dirs = dirs or resolve_core_dirs(current, platform)

    env["PLATFORMIO_CALLER"] = caller
    if (platform or sys.platform) == "darwin":
        env["LC_ALL"] = "en_US.UTF-8"
    if caller in NO_PROGRESSBAR_CALLERS:
        env["PLATFORMIO_DISABLE_PROGRESSBAR"] = "true"

    for name, value in (extra_vars or {}).items():
        env[name] = value

    sep = path_module(platform).pathsep
    path_variant = env.get("Path")
    if path_variant and path_variant != env.get("PATH"):
        env["PATH"] = env["PATH"] + sep + path_variant if env.get("PATH") else path_variant

    segments = split_path(env.get("PATH"), platform)
    if use_builtin_core:
        segments = [dirs.env_bin_dir, dirs.env_dir] + segments
    else:
        segments = [s for s in segments if not _is_within(s, dirs.env_dir, platform)]

    if extra_path and not _has_segment(segments, extra_path, platform):
        segments.insert(0, extra_path)

    env["PATH"] = join_path(segments, platform)
    if "Path" in env:
        env["Path"] = env["PATH"]
    return env


def apply_environ(target: MutableMapping[str, str], new_env: Mapping[str, str]) -> None:
    for name, value in new_env.items():
        if target.get(name) != value:
            target[name] = value


def patch_os_environ(
    caller: str,
    use_builtin_core: bool = True,
    extra_path: str | None = None,
    extra_vars: Mapping[str, str] | None = None,
    *,
    dirs: CoreDirs | None = None,
) -> None:
    new_env = compute_environ(
        os.environ,
        caller,
        use_builtin_core,
        extra_path,
        extra_vars,
        dirs=dirs,
    )
    apply_environ(os.environ, new_env)
    logger.debug("patched environment for caller=%s PATH=%s", caller, new_env.get("PATH"))
