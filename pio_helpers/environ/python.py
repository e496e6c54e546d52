"""Locate a Python interpreter that PlatformIO Core can be installed into."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

from ..core.paths import CoreDirs, is_windows, path_module, resolve_core_dirs
from ..utils.proc import run_command
from .patch import split_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompatibilityRule:
    """What a candidate interpreter must report about itself to be accepted."""

    min_version: tuple[int, int, int]
    max_version: tuple[int, int, int] = (3, 0, 0)
    forbidden_platforms: tuple[str, ...] = ("cygwin",)
    # Substrings of sys.executable that mark MSYS/MinGW builds
    forbidden_executable_markers: tuple[str, ...] = ()

    def script(self) -> str:
        lines = ["import sys"]
        for name in self.forbidden_platforms:
            lines.append(f"assert sys.platform != {name!r}")
        if self.forbidden_executable_markers:
            lines.append(
                "assert not any(s in sys.executable.lower() for s in %r)"
                % (self.forbidden_executable_markers,)
            )
        lines.append(f"assert sys.version_info < {self.max_version!r}")
        lines.append(f"assert sys.version_info >= {self.min_version!r}")
        return ";".join(lines)


COMPATIBILITY_RULES: dict[str, CompatibilityRule] = {
    "windows": CompatibilityRule(min_version=(2, 7, 9), forbidden_executable_markers=("msys", "mingw")),
    "posix": CompatibilityRule(min_version=(2, 7, 5)),
}


def compatibility_rule(platform: Optional[str] = None) -> CompatibilityRule:
    return COMPATIBILITY_RULES["windows" if is_windows(platform) else "posix"]


def python_exe_names(platform: Optional[str] = None) -> tuple[str, ...]:
    if is_windows(platform):
        return ("python.exe",)
    return ("python2.7", "python2", "python")


def is_compatible_python(
    executable: str,
    rule: Optional[CompatibilityRule] = None,
    platform: Optional[str] = None,
) -> bool:
    rule = rule or compatibility_rule(platform)
    handle = run_command(executable, ["-c", rule.script()], platform=platform)
    result = handle.result()
    logger.debug("probe %s -> %s", executable, result.returncode)
    return result.returncode == 0


def candidate_dirs(
    use_builtin_core: bool = True,
    extra_dirs: Optional[Sequence[str]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    platform: Optional[str] = None,
    dirs: Optional[CoreDirs] = None,
) -> list[str]:
    environ = os.environ if environ is None else environ
    dirs = dirs or resolve_core_dirs(environ, platform)
    locations = list(extra_dirs or [])
    if use_builtin_core:
        locations.append(dirs.env_bin_dir)
        locations.append(dirs.env_dir)  # conda
    if is_windows(platform):
        locations.append("C:\\Python27")
        locations.append(path_module(platform).join(dirs.home_dir, "python27"))
    for item in split_path(environ.get("PATH"), platform):
        if item not in locations:
            locations.append(item)
    return locations


def locate_python_executable(
    use_builtin_core: bool = True,
    extra_dirs: Optional[Sequence[str]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    platform: Optional[str] = None,
    dirs: Optional[CoreDirs] = None,
    probe: Optional[Callable[[str], bool]] = None,
) -> Optional[str]:
    """Return the first existing, compatible interpreter or ``None``.

    Candidates are probed one at a time; each probe waits for its child to exit.
    """
    pm = path_module(platform)
    probe = probe or (lambda exe: is_compatible_python(exe, platform=platform))
    locations = candidate_dirs(
        use_builtin_core, extra_dirs, environ=environ, platform=platform, dirs=dirs
    )
    for location in locations:
        for name in python_exe_names(platform):
            executable = pm.normpath(pm.join(location, name)).replace('"', "")
            if not os.path.isfile(executable):
                continue
            if probe(executable):
                logger.info("Found compatible Python at %s", executable)
                return executable
            logger.debug("Skipping incompatible Python %s", executable)
    return None
