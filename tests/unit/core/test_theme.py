"""Unit tests for theme module.

Tests for theme loading, validation, and Rich theme generation.
"""

# pyright: reportPrivateUsage=false

import os
from pathlib import Path
from unittest.mock import patch

import nixgen.core.theme as theme_module
import pytest
from nixgen.core.theme import (
    ThemeColors,
    _load_toml_colors,
    get_rich_theme,
    get_theme,
    get_user_theme_path,
    load_theme,
)
from rich.theme import Theme


class TestThemeColors:
    """Tests for ThemeColors Pydantic model."""

    def test_default_values(self) -> None:
        """ThemeColors has defaults for generation listings."""
        colors = ThemeColors()
        assert colors.header == "#7ebae4"
        assert colors.generation_current == "#5277c3"
        assert colors.error == "#f53263"

    def test_invalid_hex_no_hash(self) -> None:
        """ThemeColors rejects colors without # prefix."""
        with pytest.raises(ValueError, match="must start with '#'"):
            ThemeColors(step="7ebae4")

    def test_invalid_hex_wrong_length(self) -> None:
        """ThemeColors rejects colors with wrong length."""
        with pytest.raises(ValueError, match="must be #RGB or #RRGGBB"):
            ThemeColors(command="#ff")

    def test_invalid_hex_chars(self) -> None:
        """ThemeColors rejects invalid hex characters."""
        with pytest.raises(ValueError, match="invalid hex color"):
            ThemeColors(removed="#gggggg")

    def test_extra_fields_forbidden(self) -> None:
        """ThemeColors rejects unknown fields."""
        with pytest.raises(ValueError):
            ThemeColors(package_manual="#ffffff")  # type: ignore[call-arg]


class TestLoadTomlColors:
    """Tests for _load_toml_colors internal function."""

    def test_loads_valid_toml(self, tmp_path: Path) -> None:
        """Loads colors from valid TOML file."""
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text('[colors]\nstep = "#000000"\n')

        assert _load_toml_colors(theme_file) == {"step": "#000000"}

    def test_returns_none_for_missing_file(self, tmp_path: Path) -> None:
        """Returns None when file doesn't exist."""
        assert _load_toml_colors(tmp_path / "nonexistent.toml") is None

    def test_returns_none_for_invalid_toml(self, tmp_path: Path) -> None:
        """Returns None for malformed TOML."""
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text("not valid [ toml syntax")

        assert _load_toml_colors(theme_file) is None

    def test_returns_none_for_invalid_colors_section(self, tmp_path: Path) -> None:
        """Returns None when colors is not a table."""
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text('colors = "red"\n')

        assert _load_toml_colors(theme_file) is None


class TestLoadTheme:
    """Tests for load_theme function."""

    def test_loads_bundled_theme(self, tmp_path: Path) -> None:
        """Loads theme from bundled data file."""
        with patch("nixgen.core.theme.get_user_theme_path", return_value=tmp_path / "none.toml"):
            colors = load_theme()

        assert colors == ThemeColors()

    def test_user_theme_overrides_bundled(self, tmp_path: Path) -> None:
        """User theme overrides bundled theme values."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\ngeneration_current = "#ff0000"\n')

        with patch("nixgen.core.theme.get_user_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors.generation_current == "#ff0000"
        assert colors.success == "#03b971"

    def test_invalid_user_color_falls_back(self, tmp_path: Path) -> None:
        """An invalid user color falls back to the defaults."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nstep = "blue"\n')

        with patch("nixgen.core.theme.get_user_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors == ThemeColors()


class TestGetRichTheme:
    """Tests for get_rich_theme function."""

    def test_includes_styles(self) -> None:
        """Theme includes the styles used by the formatting helpers."""
        theme = get_rich_theme(ThemeColors())

        for style in ("header", "muted", "step", "command", "generation_current", "removed"):
            assert style in theme.styles

    def test_caches_theme(self) -> None:
        """get_theme returns cached instance on subsequent calls."""
        theme_module._cached_theme = None

        theme1 = get_theme()
        theme2 = get_theme()

        assert isinstance(theme1, Theme)
        assert theme1 is theme2


class TestGetUserThemePath:
    """Tests for get_user_theme_path function."""

    def test_returns_xdg_config_path(self, tmp_path: Path) -> None:
        """Returns path under the nixgen config directory."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            path = get_user_theme_path()

        assert path == tmp_path / "nixgen" / "theme.toml"
