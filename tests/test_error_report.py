from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from pio_helpers.service_layer.error_report import NEW_ISSUE_URL, get_error_report_url


def test_known_error_maps_to_issue():
    url = get_error_report_url("Install failed", "Traceback ... _remove_dead_weakref ...")
    assert url == "https://github.com/platformio/platformio-vscode-ide/issues/142"


def test_unknown_error_opens_new_issue():
    url = get_error_report_url("Install failed", "something & else")
    assert url.startswith(NEW_ISSUE_URL + "?")
    query = parse_qs(urlparse(url).query)
    assert query["title"] == ["Install failed"]
    assert query["body"] == ["something & else"]
