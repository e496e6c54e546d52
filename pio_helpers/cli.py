from __future__ import annotations

"""Command-line entry point for the PlatformIO process helpers."""

import argparse
import logging
import os
import sys
from typing import Optional

from .adapters.http_client import process_http_request
from .core.config import load_settings
from .environ.patch import compute_environ, split_path
from .environ.python import locate_python_executable
from .utils.proc import run_command

# Shell convention for "command not found"
LAUNCH_FAILURE_EXIT = 127


def _parse_var(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    return name, value


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pio-helpers", description="PlatformIO process helpers")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    env_p = sub.add_parser("env", help="Print the normalized PATH")
    env_p.add_argument("--caller", type=str, default=None)
    env_p.add_argument("--no-builtin-core", dest="use_builtin_core", action="store_false", default=None)
    env_p.add_argument("--extra-path", type=str, default=None)
    env_p.add_argument("--var", dest="vars", type=_parse_var, action="append", default=[])

    py_p = sub.add_parser("python", help="Locate a compatible Python interpreter")
    py_p.add_argument("--no-builtin-core", dest="use_builtin_core", action="store_false", default=None)
    py_p.add_argument("--dir", dest="dirs", action="append", default=None, help="Extra directory to search first")

    run_p = sub.add_parser("run", help="Run a command and report its outcome")
    run_p.add_argument("cmd", nargs=argparse.REMAINDER)

    fetch_p = sub.add_parser("fetch", help="Relay one HTTP GET and print the body")
    fetch_p.add_argument("url")
    fetch_p.add_argument("--timeout", dest="http_timeout", type=int, default=None)
    return p


def _cmd_env(args: argparse.Namespace) -> int:
    settings = load_settings(
        caller=args.caller,
        use_builtin_core=args.use_builtin_core,
        extra_path=args.extra_path,
        extra_vars=dict(args.vars) or None,
    )
    env = compute_environ(
        os.environ,
        settings.caller,
        settings.use_builtin_core,
        settings.extra_path,
        settings.extra_vars,
    )
    for segment in split_path(env.get("PATH")):
        print(segment)  # noqa: T201
    return 0


def _cmd_python(args: argparse.Namespace) -> int:
    settings = load_settings(use_builtin_core=args.use_builtin_core, extra_dirs=args.dirs)
    executable = locate_python_executable(settings.use_builtin_core, settings.extra_dirs)
    if not executable:
        print("No compatible Python interpreter found", file=sys.stderr)  # noqa: T201
        return 1
    print(executable)  # noqa: T201
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    cmd = list(args.cmd)
    if cmd and cmd[0] == "--":
        cmd = cmd[1:]
    if not cmd:
        print("run: missing command", file=sys.stderr)  # noqa: T201
        return 2
    rc, out, err = run_command(cmd[0], cmd[1:]).result()
    if out:
        sys.stdout.write(out)
    if err:
        sys.stderr.write(err)
    return LAUNCH_FAILURE_EXIT if rc == -1 else rc


def _cmd_fetch(args: argparse.Namespace) -> int:
    settings = load_settings(http_timeout=args.http_timeout)

    def report(err, response, body) -> int:
        if err is not None:
            print(f"fetch failed: {err}", file=sys.stderr)  # noqa: T201
            return 1
        sys.stdout.write(body or "")
        return 0 if response.status_code < 400 else 1

    return process_http_request(args.url, report, timeout=settings.http_timeout)


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    handlers = {"env": _cmd_env, "python": _cmd_python, "run": _cmd_run, "fetch": _cmd_fetch}
    return handlers[args.command](args)


if __name__ == "__main__":
    raise SystemExit(main())
