"""Tests for shared helpers and module import smoke checks."""
from __future__ import annotations


class TestJsonParse:
    def test_valid_json(self):
        from ecosync.utils import json_parse
        assert json_parse('{"a": 1}') == {"a": 1}

    def test_invalid_json_default(self):
        from ecosync.utils import json_parse
        assert json_parse("not json", []) == []

    def test_invalid_json_no_default(self):
        from ecosync.utils import json_parse
        assert json_parse("bad") == {}

    def test_none_input(self):
        from ecosync.utils import json_parse
        assert json_parse(None) == {}

    def test_empty_string(self):
        from ecosync.utils import json_parse
        assert json_parse("", []) == []


class TestRoundHalfUp:
    def test_half_goes_up(self):
        from ecosync.utils import round_half_up
        assert round_half_up(82.5) == 83
        assert round_half_up(80.5) == 81

    def test_below_half(self):
        from ecosync.utils import round_half_up
        assert round_half_up(82.49) == 82

    def test_integer(self):
        from ecosync.utils import round_half_up
        assert round_half_up(7) == 7


class TestModuleImports:
    """Verify all modules import cleanly."""

    def test_import_analyzer(self):
        from ecosync.analyzer import LLMClient, analyze_project, parse_analysis
        assert callable(analyze_project)
        assert callable(parse_analysis)
        assert LLMClient is not None

    def test_import_demo(self):
        from ecosync.demo import analyze_offline
        assert callable(analyze_offline)

    def test_import_services(self):
        from ecosync.services import run_analysis, submit_project
        assert callable(run_analysis)
        assert callable(submit_project)

    def test_import_app(self):
        from ecosync.app import app
        assert app is not None

    def test_import_mcp_server(self):
        from ecosync.mcp_server import _backend_error, mcp
        assert mcp is not None
        assert callable(_backend_error)
