"""Tests for factory_cli module."""

import json
import sys

import pytest

from factory import Requirement
from factory_cli import main, parse_requirement_list


def test_parse_requirement_list_basic():
    """parse_requirement_list should parse comma-separated requirements"""
    result = parse_requirement_list("Steel:3, Silumin:2:500")

    assert result == {
        "Steel": Requirement(3),
        "Silumin": Requirement(2, 500),
    }
    assert list(result) == ["Steel", "Silumin"]


def test_parse_requirement_list_empty():
    """parse_requirement_list should handle empty string"""
    assert parse_requirement_list("") == {}
    assert parse_requirement_list("   ") == {}
    assert parse_requirement_list(None) == {}


def test_parse_requirement_list_trailing_comma():
    """parse_requirement_list should handle trailing comma"""
    assert parse_requirement_list("Steel:3,") == {"Steel": Requirement(3)}


def test_parse_requirement_list_duplicate():
    """the last entry of a duplicated item wins"""
    assert parse_requirement_list("Steel:3, Steel:1:20") == {"Steel": Requirement(1, 20)}


def test_parse_requirement_list_invalid():
    """parse_requirement_list should propagate entry errors"""
    with pytest.raises(ValueError, match="Invalid format"):
        parse_requirement_list("Steel:3, Silumin")


def test_main_basic_output(monkeypatch, capsys):
    """main should print graphviz source and a summary"""
    monkeypatch.setattr(sys, 'argv', ['factory_cli.py', '--requirements', 'Steel:3'])

    result = main()

    assert result == 0
    captured = capsys.readouterr()
    assert 'digraph' in captured.out
    assert 'Steel' in captured.out
    assert 'industries:' in captured.err


def test_main_with_output_file(monkeypatch, tmp_path):
    """main should write to file when --output-file specified"""
    output = tmp_path / "steel.dot"
    monkeypatch.setattr(sys, 'argv', [
        'factory_cli.py',
        '-r', 'Steel:1:100',
        '--output-file', str(output),
    ])

    result = main()

    assert result == 0
    content = output.read_text(encoding='utf-8')
    assert 'digraph' in content
    assert 'Iron Pure' in content


def test_main_custom_recipes(monkeypatch, tmp_path, capsys):
    """main should read recipes from --recipes"""
    recipes = tmp_path / "recipes.json"
    recipes.write_text(json.dumps({
        "Widget": {"time": 1, "out": 1, "in": {"Gear": 2}},
        "Gear": {"time": 1, "out": 1, "in": {"Ore": 1}},
    }), encoding='utf-8')
    monkeypatch.setattr(sys, 'argv', ['factory_cli.py', '-r', 'Widget:1', '-R', str(recipes)])

    result = main()

    assert result == 0
    assert 'Gear' in capsys.readouterr().out


def test_main_missing_recipes_file(monkeypatch, tmp_path, capsys):
    """main should report unreadable recipe files"""
    monkeypatch.setattr(sys, 'argv', [
        'factory_cli.py', '-r', 'Steel:1', '-R', str(tmp_path / "missing.json"),
    ])

    assert main() == 1
    assert 'Error:' in capsys.readouterr().err


def test_main_no_requirements(monkeypatch, capsys):
    """main should error when no requirements specified"""
    monkeypatch.setattr(sys, 'argv', [
        'factory_cli.py',
        '--requirements', ''
    ])

    result = main()

    assert result == 1
    captured = capsys.readouterr()
    assert 'No requirements specified' in captured.err


def test_main_invalid_requirement_format(monkeypatch, capsys):
    """main should error on invalid requirement format"""
    monkeypatch.setattr(sys, 'argv', [
        'factory_cli.py',
        '--requirements', 'InvalidFormat'
    ])

    result = main()

    assert result == 1
    captured = capsys.readouterr()
    assert 'Error:' in captured.err


def test_main_unknown_item(monkeypatch, capsys):
    """main should error on items without a recipe"""
    monkeypatch.setattr(sys, 'argv', ['factory_cli.py', '-r', 'Hematite:1'])

    assert main() == 1
    assert "No recipe produces 'Hematite'" in capsys.readouterr().err
