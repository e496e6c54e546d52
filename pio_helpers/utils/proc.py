"""Process helpers: launch one child process and report its outcome once."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from typing import IO, Any, NamedTuple, Optional

from ..core.paths import ensure_cache_dir, is_windows, path_module

logger = logging.getLogger(__name__)

# Installers that choke on non-ASCII output under the default Windows temp dir
ISOLATED_TMP_TOOLS = ("pip", "virtualenv")

CompletionCallback = Callable[[int, str, str], Any]


class ProcessResult(NamedTuple):
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class SpawnOptions:
    cwd: Optional[str] = None
    env: Optional[Mapping[str, str]] = None
    # Passed through to subprocess.Popen as-is
    extra: Mapping[str, Any] = field(default_factory=dict)


class ProcessHandle:
    """Result holder for one launched command.

    ``_finish`` is the single resolution point: the first call wins and every
    later one is ignored, so the callback runs at most once.
    """

    def __init__(self, callback: Optional[CompletionCallback] = None, tmp_dir: Optional[str] = None):
        self._callback = callback
        self._tmp_dir = tmp_dir
        self._future: Future[ProcessResult] = Future()
        self._lock = threading.Lock()
        self._completed = False
        self._stdout: list[bytes] = []
        self._stderr: list[bytes] = []
        self._reader_failed = False
        self.pid: Optional[int] = None

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> ProcessResult:
        return self._future.result(timeout)

    def _append_error(self, text: str) -> None:
        self._stderr.append(text.encode("utf-8", errors="replace"))

    def _finish(self, code: int) -> None:
        with self._lock:
            if self._completed:
                return
            self._completed = True

        if self._tmp_dir:
            try:
                shutil.rmtree(self._tmp_dir)
            except OSError as e:
                logger.warning("Failed to remove temporary directory %s: %s", self._tmp_dir, e)

        result = ProcessResult(
            code,
            b"".join(self._stdout).decode("utf-8", errors="replace"),
            b"".join(self._stderr).decode("utf-8", errors="replace"),
        )
        if self._callback is not None:
            try:
                self._callback(*result)
            except Exception:
                logger.exception("Completion callback failed for pid=%s", self.pid)
        # Resolved after the callback so result() waiters observe its effects
        self._future.set_result(result)


def _tool_name(command: str, platform: Optional[str]) -> str:
    name = path_module(platform).basename(command)
    if is_windows(platform) and name.lower().endswith(".exe"):
        name = name[:-4]
    return name


def needs_isolated_tmp(command: str, args: Sequence[str], platform: Optional[str] = None) -> bool:
    if not is_windows(platform):
        return False
    names = [_tool_name(command, platform), *args]
    return any(item in ISOLATED_TMP_TOOLS for item in names)


def _isolate_tmp(options: SpawnOptions) -> tuple[SpawnOptions, str]:
    tmp_dir = tempfile.mkdtemp(prefix="pio-", dir=ensure_cache_dir())
    env = dict(os.environ if options.env is None else options.env)
    env["TMPDIR"] = env["TEMP"] = env["TMP"] = tmp_dir
    return replace(options, env=env), tmp_dir


def _pump(stream: IO[bytes], sink: list[bytes], handle: ProcessHandle) -> None:
    try:
        for chunk in iter(lambda: stream.read1(8192), b""):  # type: ignore[attr-defined]
            sink.append(chunk)
    except (OSError, ValueError) as e:
        # Reported by _wait once both readers are done with the buffers
        handle._append_error(str(e))
        handle._reader_failed = True
    finally:
        stream.close()


def _wait(proc: subprocess.Popen[bytes], readers: list[threading.Thread], handle: ProcessHandle) -> None:
    for reader in readers:
        reader.join()
    code = proc.wait()
    logger.debug("pid=%s exited with %s", proc.pid, code)
    handle._finish(-1 if handle._reader_failed else code)


def run_command(
    command: str,
    args: Sequence[str] = (),
    callback: Optional[CompletionCallback] = None,
    options: Optional[SpawnOptions] = None,
    *,
    platform: Optional[str] = None,
) -> ProcessHandle:
    """Launch ``command`` and return at once.

    ``callback(returncode, stdout, stderr)`` is invoked exactly once, from a
    background thread, after the process exits or fails to start. Launch
    failures are reported as ``-1`` with the error text in stderr; nothing is
    raised to the caller.
    """
    options = options or SpawnOptions()
    args = list(args)
    logger.info("run_command %s %s", command, args)

    tmp_dir = None
    if needs_isolated_tmp(command, args, platform):
        try:
            options, tmp_dir = _isolate_tmp(options)
        except OSError as e:
            logger.warning("Could not create isolated TMPDIR: %s", e)

    handle = ProcessHandle(callback, tmp_dir)
    try:
        proc = subprocess.Popen(
            [command, *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=options.cwd,
            env=dict(options.env) if options.env is not None else None,
            **dict(options.extra),
        )
    except (OSError, ValueError, TypeError, subprocess.SubprocessError) as e:
        logger.debug("Failed to launch %s: %s", command, e)
        handle._append_error(str(e))
        handle._finish(-1)
        return handle

    handle.pid = proc.pid
    assert proc.stdout is not None and proc.stderr is not None
    readers = [
        threading.Thread(target=_pump, args=(proc.stdout, handle._stdout, handle), daemon=True),
        threading.Thread(target=_pump, args=(proc.stderr, handle._stderr, handle), daemon=True),
    ]
    for reader in readers:
        reader.start()
    threading.Thread(target=_wait, args=(proc, readers, handle), daemon=True).start()
    return handle


def run(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> ProcessResult:
    """Run a command to completion returning (rc, stdout, stderr)."""
    if not cmd:
        return ProcessResult(-1, "", "empty command")
    handle = run_command(cmd[0], cmd[1:], options=SpawnOptions(cwd=cwd, env=env), platform=platform)
    return handle.result()
