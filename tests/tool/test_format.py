"""Tests for the format library."""

import io
import json

from plant_operator.tool.format import (
    format_columns,
    JsonFormatter,
    PrintFormatter,
    YamlFormatter,
)


def test_format_columns_empty() -> None:
    """Tests with no rows."""
    assert list(format_columns([], [])) == []


def test_format_columns_empty_rows() -> None:
    """Tests with only a header."""
    assert list(format_columns(["a", "b", "c"], [])) == ["a    b    c"]


def test_format_columns_rows() -> None:
    """Tests format with normal rows"""
    assert list(
        format_columns(["name", "state"], [["web", "Ready"], ["api", "Processing"]])
    ) == [
        "name    state",
        "web     Ready",
        "api     Processing",
    ]


def test_print_formatter() -> None:
    """Print formatting with empty data."""
    formatter = PrintFormatter(keys=["name"])
    assert list(formatter.format([])) == []


def test_print_formatter_keys() -> None:
    """Print formatting only the selected columns."""
    formatter = PrintFormatter(keys=["kind", "name"])
    assert list(
        formatter.format(
            [
                {"kind": "Plant", "name": "web", "state": "Ready"},
                {"kind": "Deployment", "name": "web"},
            ]
        )
    ) == [
        "KIND          NAME",
        "Plant         web",
        "Deployment    web",
    ]


def test_print_formatter_missing_key() -> None:
    """Missing values are printed as blank columns."""
    formatter = PrintFormatter(keys=["name", "state"])
    assert list(formatter.format([{"name": "web"}])) == ["NAME    STATE", "web"]


def test_yaml_formatter() -> None:
    """Yaml formatting prints one document per object."""
    formatter = YamlFormatter()
    assert list(formatter.format([{"kind": "Plant"}, {"kind": "Service"}])) == [
        "---",
        "kind: Plant",
        "---",
        "kind: Service",
    ]


def test_json_formatter() -> None:
    """Json formatting prints the list of objects."""
    formatter = JsonFormatter()
    output = io.StringIO()
    formatter.print([{"kind": "Plant", "spec": {"replicas": 2}}], file=output)
    assert json.loads(output.getvalue()) == [{"kind": "Plant", "spec": {"replicas": 2}}]
