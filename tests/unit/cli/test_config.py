"""Unit tests for the config commands."""

import os
from pathlib import Path
from unittest.mock import patch

from nixgen.cli.main import app
from nixgen.core.settings import Settings, load_settings
from typer.testing import CliRunner

runner = CliRunner()


class TestConfigShow:
    """Tests for config show."""

    def test_shows_loaded_file(self, tmp_path: Path) -> None:
        """The settings file in use and its values are shown."""
        path = tmp_path / "config.toml"
        path.write_text('root_command = "doas"\n')

        with patch.dict(os.environ, {"NIXGEN_CONFIG": str(path)}):
            result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "# Loaded from" in result.stdout
        assert "doas" in result.stdout
        assert "[apply]" in result.stdout

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        """Without a settings file the defaults are shown."""
        with (
            patch("nixgen.cli.commands.config.find_settings_path", return_value=None),
            patch("nixgen.cli.types.load_settings", return_value=Settings()),
        ):
            result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "showing defaults" in result.stdout
        assert "sudo" in result.stdout

    def test_invalid_file(self, tmp_path: Path) -> None:
        """A broken settings file exits with code 1."""
        path = tmp_path / "config.toml"
        path.write_text("root_command = \n")

        with patch.dict(os.environ, {"NIXGEN_CONFIG": str(path)}):
            result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 1
        assert "Invalid TOML syntax" in result.output


class TestConfigInit:
    """Tests for config init."""

    def test_creates_user_settings(self, tmp_path: Path) -> None:
        """init writes the default settings to the user path."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = runner.invoke(app, ["config", "init"])

        path = tmp_path / "nixgen" / "config.toml"
        assert result.exit_code == 0
        assert "Settings written to" in result.stdout
        assert load_settings(path) == Settings()

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        """An existing file is kept unless --force is given."""
        path = tmp_path / "nixgen" / "config.toml"
        path.parent.mkdir()
        path.write_text('root_command = "doas"\n')

        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert load_settings(path).root_command == "doas"

    def test_force_overwrites(self, tmp_path: Path) -> None:
        """--force replaces an existing file."""
        path = tmp_path / "nixgen" / "config.toml"
        path.parent.mkdir()
        path.write_text('root_command = "doas"\n')

        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = runner.invoke(app, ["config", "init", "--force"])

        assert result.exit_code == 0
        assert load_settings(path).root_command == "sudo"
