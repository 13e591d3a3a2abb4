"""
Tests for the wabot command line.
"""

import json

from typer.testing import CliRunner

from wabot import __version__
from wabot.cli.commands import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_classify_rule(tmp_path):
    result = runner.invoke(app, ["classify", "hello there", "--seed", "1", "--config", str(tmp_path / "none.json")])

    assert result.exit_code == 0
    assert "greeting" in result.output


def test_classify_fallback(tmp_path):
    result = runner.invoke(app, ["classify", "what time is the game", "--config", str(tmp_path / "none.json")])

    assert result.exit_code == 0
    assert "fallback" in result.output
    assert "what time is the game" in result.output


def test_rules_from_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "autoReply": {"rules": [{"name": "order", "pattern": "order", "replies": ["On it."]}]},
    }))

    result = runner.invoke(app, ["rules", "--config", str(path)])

    assert result.exit_code == 0
    assert "order" in result.output
    assert "greeting" not in result.output
