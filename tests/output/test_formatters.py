"""Tests for output mode selection."""

from __future__ import annotations

import json

from schemalens.output.formatters import OutputSettings, format_result
from schemalens.services.result import ServiceResult


def _result() -> ServiceResult:
    return ServiceResult(
        ok=True,
        op="list_objects",
        data={"query": "", "count": 1, "items": [{"id": 42, "name": "Orders", "schema": "sales"}]},
    )


class TestFormatResult:
    def test_json_mode(self) -> None:
        payload = json.loads(format_result(_result(), settings=OutputSettings(json_output=True)))
        assert payload["ok"] is True
        assert payload["op"] == "list_objects"
        assert payload["data"]["items"][0]["name"] == "Orders"

    def test_json_beats_quiet(self) -> None:
        out = format_result(_result(), settings=OutputSettings(json_output=True, quiet=True))
        assert out.startswith("{")

    def test_quiet_mode(self) -> None:
        assert format_result(_result(), settings=OutputSettings(quiet=True)) == "42"

    def test_default_is_rich(self) -> None:
        out = format_result(_result())
        assert "OK" in out
        assert "Orders" in out
