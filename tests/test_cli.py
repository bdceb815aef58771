"""
Tests for the command-line interface.
"""
import pytest
from typer.testing import CliRunner

from chat_sync.cli.main import app

runner = CliRunner()


def test_demo_command():
    """The demo prints users, Bob's chat list and the conversation."""
    result = runner.invoke(app, ["demo"])

    assert result.exit_code == 0
    assert "Alice" in result.stdout
    assert "Bob's chats" in result.stdout
    assert "lunch tomorrow?" in result.stdout


def test_users_search():
    """Searching the demo directory finds Alice."""
    result = runner.invoke(app, ["users", "search", "ali"])

    assert result.exit_code == 0
    assert "alice@example.com" in result.stdout


def test_users_search_no_match():
    result = runner.invoke(app, ["users", "search", "zed"])

    assert result.exit_code == 0
    assert "No users match" in result.stdout


def test_config_save(tmp_path):
    """Configuration can be written to a chosen path."""
    target = tmp_path / "out.yaml"

    result = runner.invoke(app, ["config", "save", str(target)])

    assert result.exit_code == 0
    assert target.exists()


def test_invalid_config_file_exits(tmp_path):
    """A config file with bad values stops the CLI with an error."""
    config_path = tmp_path / "bad.yaml"
    config_path.write_text("typing:\n  timeout: soon\n")

    result = runner.invoke(app, ["--config", str(config_path), "version"])

    assert result.exit_code == 1
    assert "Invalid configuration data" in result.stdout


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "chat-sync" in result.stdout


if __name__ == "__main__":
    pytest.main([__file__])
