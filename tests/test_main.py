"""Tests for CLI argument handling."""
from pathlib import Path

from bcexport.main import parse_args


def test_parse_args_defaults():
    args = parse_args([])
    assert args.format == "csv"
    assert args.cookie is None
    assert args.no_hidden is False
    assert args.output is None


def test_parse_args_overrides():
    args = parse_args(
        ["--cookie", "identity=abc", "--format", "json", "--output", "out.json", "--no-hidden", "--max-pages", "3"]
    )
    assert args.cookie == "identity=abc"
    assert args.format == "json"
    assert args.output == Path("out.json")
    assert args.no_hidden is True
    assert args.max_pages == 3
