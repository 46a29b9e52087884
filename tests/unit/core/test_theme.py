"""Unit tests for theme module.

Tests for theme loading, validation, and Rich theme generation.
"""

# pyright: reportPrivateUsage=false

from pathlib import Path

import pytest
from pkgr.core.theme import (
    ThemeColors,
    _load_toml_colors,
    get_rich_theme,
    get_user_theme_path,
    load_theme,
)
from rich.theme import Theme


class TestThemeColors:
    """Tests for ThemeColors Pydantic model."""

    def test_default_values(self) -> None:
        """ThemeColors has sensible defaults."""
        colors = ThemeColors()
        assert colors.text == "#ffffff"
        assert colors.error == "#f53263"

    def test_invalid_hex_no_hash(self) -> None:
        """ThemeColors rejects colors without # prefix."""
        with pytest.raises(ValueError, match="must start with '#'"):
            ThemeColors(text="ffffff")

    def test_invalid_hex_wrong_length(self) -> None:
        with pytest.raises(ValueError, match="must be #RGB or #RRGGBB"):
            ThemeColors(text="#ff")

    def test_unknown_color_rejected(self) -> None:
        with pytest.raises(ValueError):
            ThemeColors.model_validate({"sparkle": "#fff"})


class TestLoadTheme:
    """Tests for loading user overrides."""

    def test_user_theme_path_follows_xdg(self, tmp_path: Path) -> None:
        """The autouse fixture points XDG_CONFIG_HOME into tmp_path."""
        assert get_user_theme_path() == tmp_path / "xdg-config" / "pkgr" / "theme.toml"

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_theme(tmp_path / "missing.toml") == ThemeColors()

    def test_partial_override(self, tmp_path: Path) -> None:
        path = tmp_path / "theme.toml"
        path.write_text('[colors]\nsuccess = "#00ff00"\nnot_a_string = 3\n')

        colors = load_theme(path)

        assert colors.success == "#00ff00"
        assert colors.error == ThemeColors().error

    def test_invalid_override_falls_back(self, tmp_path: Path) -> None:
        path = tmp_path / "theme.toml"
        path.write_text('[colors]\nsuccess = "green"\n')

        assert load_theme(path) == ThemeColors()

    def test_malformed_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "theme.toml"
        path.write_text("[colors\n")

        assert _load_toml_colors(path) is None


class TestRichTheme:
    """Tests for get_rich_theme."""

    def test_styles_present(self) -> None:
        theme = get_rich_theme(ThemeColors())

        assert isinstance(theme, Theme)
        for style in ("info", "error", "package.id", "package.version", "bold_header"):
            assert style in theme.styles
