"""Map known failure output to an issue URL."""

from __future__ import annotations

from urllib.parse import urlencode

NEW_ISSUE_URL = "https://github.com/platformio/platformio-vscode-ide/issues/new"

KNOWN_ERRORS: tuple[tuple[str, str], ...] = (
    ("_remove_dead_weakref", "https://github.com/platformio/platformio-vscode-ide/issues/142"),
    ("Could not install 'tool-pioplus'", "https://github.com/platformio/platformio-vscode-ide/issues/131"),
    ("http://bit.ly/pio-core-virtualenv", "https://github.com/platformio/platformio-vscode-ide/issues/154"),
    (
        "Could not start PIO Home server: Error: timeout",
        "https://github.com/platformio/platformio-vscode-ide/issues/205",
    ),
)


def get_error_report_url(title: str, description: str) -> str:
    for needle, url in KNOWN_ERRORS:
        if needle in description:
            return url
    return f"{NEW_ISSUE_URL}?{urlencode({'title': title, 'body': description})}"
