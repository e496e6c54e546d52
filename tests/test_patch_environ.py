from __future__ import annotations

import os

from pio_helpers.core.paths import CoreDirs, resolve_core_dirs
from pio_helpers.environ.patch import compute_environ, patch_os_environ, split_path

POSIX_DIRS = CoreDirs(
    core_dir="/home/u/.platformio",
    cache_dir="/home/u/.platformio/.cache",
    env_dir="/home/u/.platformio/penv",
    env_bin_dir="/home/u/.platformio/penv/bin",
    home_dir="/home/u/.platformio",
)

WIN_DIRS = resolve_core_dirs({"PLATFORMIO_CORE_DIR": "C:\\Users\\u\\.platformio"}, "win32")


def test_vscode_caller_on_linux_prepends_bundled_dirs():
    env = compute_environ({"PATH": "/usr/bin:/bin"}, "vscode", True, platform="linux", dirs=POSIX_DIRS)
    assert env["PLATFORMIO_CALLER"] == "vscode"
    assert split_path(env["PATH"]) == [
        "/home/u/.platformio/penv/bin",
        "/home/u/.platformio/penv",
        "/usr/bin",
        "/bin",
    ]
    assert "PLATFORMIO_DISABLE_PROGRESSBAR" not in env
    assert "LC_ALL" not in env


def test_atom_caller_disables_progressbar():
    env = compute_environ({"PATH": "/usr/bin"}, "atom", platform="linux", dirs=POSIX_DIRS)
    assert env["PLATFORMIO_DISABLE_PROGRESSBAR"] == "true"


def test_macos_forces_utf8_locale():
    env = compute_environ({"PATH": "/usr/bin", "LC_ALL": "C"}, "vscode", platform="darwin", dirs=POSIX_DIRS)
    assert env["LC_ALL"] == "en_US.UTF-8"


def test_extra_vars_are_assigned_last_writer_wins():
    env = compute_environ(
        {"PATH": "/usr/bin", "FOO": "old"},
        "vscode",
        extra_vars={"FOO": "new", "PLATFORMIO_CALLER": "override"},
        platform="linux",
        dirs=POSIX_DIRS,
    )
    assert env["FOO"] == "new"
    assert env["PLATFORMIO_CALLER"] == "override"


def test_disabling_builtin_core_removes_env_segments():
    current = {
        "PATH": ":".join(
            [
                "/home/u/.platformio/penv/bin",
                "/usr/bin",
                "",
                "/home/u/.platformio/penv",
                "/home/u/.platformio/penv/lib/nested",
                "/home/u/.platformio/penv-other/bin",
            ]
        )
    }
    env = compute_environ(current, "vscode", False, platform="linux", dirs=POSIX_DIRS)
    segments = env["PATH"].split(":")
    assert segments == ["/usr/bin", "/home/u/.platformio/penv-other/bin"]
    assert not any(s == POSIX_DIRS.env_dir or s.startswith(POSIX_DIRS.env_dir + "/") for s in segments)


def test_extra_path_is_prepended_once():
    env = compute_environ({"PATH": "/usr/bin"}, "vscode", False, "/opt/tools", platform="linux", dirs=POSIX_DIRS)
    assert split_path(env["PATH"]) == ["/opt/tools", "/usr/bin"]

    env = compute_environ({"PATH": "/usr/bin:/opt/tools"}, "vscode", False, "/opt/tools", platform="linux", dirs=POSIX_DIRS)
    assert split_path(env["PATH"]) == ["/usr/bin", "/opt/tools"]


def test_windows_path_variant_is_merged_and_synced():
    current = {"PATH": "C:\\Windows", "Path": "C:\\Tools"}
    env = compute_environ(current, "vscode", True, platform="win32", dirs=WIN_DIRS)
    segments = split_path(env["PATH"], "win32")
    assert segments == [
        "C:\\Users\\u\\.platformio\\penv\\Scripts",
        "C:\\Users\\u\\.platformio\\penv",
        "C:\\Windows",
        "C:\\Tools",
    ]
    assert env["Path"] == env["PATH"]


def test_windows_path_variant_used_when_path_missing():
    env = compute_environ({"Path": "C:\\Tools"}, "vscode", False, platform="win32", dirs=WIN_DIRS)
    assert env["PATH"] == "C:\\Tools"
    assert env["Path"] == "C:\\Tools"


def test_input_mapping_is_not_mutated():
    current = {"PATH": "/usr/bin"}
    compute_environ(current, "vscode", True, "/opt/x", {"A": "1"}, platform="linux", dirs=POSIX_DIRS)
    assert current == {"PATH": "/usr/bin"}


def test_repeated_normalization_yields_same_segment_set():
    first = compute_environ({"PATH": "/usr/bin"}, "vscode", True, "/opt/x", platform="linux", dirs=POSIX_DIRS)
    second = compute_environ(first, "vscode", True, "/opt/x", platform="linux", dirs=POSIX_DIRS)
    assert set(split_path(first["PATH"])) == set(split_path(second["PATH"]))


def test_patch_os_environ_updates_process_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PATH", "/usr/bin")
    monkeypatch.delenv("PLATFORMIO_CALLER", raising=False)
    monkeypatch.delenv("PLATFORMIO_DISABLE_PROGRESSBAR", raising=False)
    monkeypatch.delenv("LC_ALL", raising=False)
    monkeypatch.delenv("Path", raising=False)
    dirs = resolve_core_dirs({"PLATFORMIO_CORE_DIR": str(tmp_path)})
    patch_os_environ("vscode", True, dirs=dirs)
    assert os.environ["PLATFORMIO_CALLER"] == "vscode"
    assert split_path(os.environ["PATH"])[:2] == [dirs.env_bin_dir, dirs.env_dir]


def test_extra_path_sharing_a_prefix_is_still_added():
    env = compute_environ({"PATH": "/opt/tools-v2:/usr/bin"}, "vscode", False, "/opt/tools", platform="linux", dirs=POSIX_DIRS)
    assert split_path(env["PATH"]) == ["/opt/tools", "/opt/tools-v2", "/usr/bin"]
