"""Console colors for nixgen.

The bundled ``data/theme.toml`` defines every color. A user theme at
``~/.config/nixgen/theme.toml`` may override any subset of them; an
invalid override is reported and the bundled colors are used instead.
"""

import logging
import tomllib
from importlib import resources
from pathlib import Path
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from rich.theme import Theme

from nixgen.core.paths import get_config_dir

logger = logging.getLogger(__name__)


def _check_hex_color(value: str) -> str:
    color = value.strip()
    if not color.startswith("#"):
        msg = f"color must start with '#', got '{color}'"
        raise ValueError(msg)
    digits = color[1:]
    if len(digits) not in (3, 6):
        msg = f"color must be #RGB or #RRGGBB format, got '{color}'"
        raise ValueError(msg)
    try:
        int(digits, 16)
    except ValueError:
        msg = f"invalid hex color '{color}'"
        raise ValueError(msg) from None
    return color


HexColor = Annotated[str, AfterValidator(_check_hex_color)]


class ThemeColors(BaseModel):
    """Colors used by the console output, as ``#RGB`` or ``#RRGGBB`` hex codes."""

    model_config = ConfigDict(extra="forbid")

    text: HexColor = "#ffffff"
    muted: HexColor = "#b2bec3"
    header: HexColor = "#7ebae4"
    border: HexColor = "#415e9a"

    success: HexColor = "#03b971"
    warning: HexColor = "#f5b332"
    error: HexColor = "#f53263"
    info: HexColor = "#0ec1c8"

    # Generation listings and activation steps
    removed: HexColor = "#f53263"
    step: HexColor = "#7ebae4"
    command: HexColor = "#b2bec3"
    generation_current: HexColor = "#5277c3"
    generation_other: HexColor = "#ffffff"


# Text attributes added on top of the color for some styles
_STYLE_ATTRIBUTES: dict[str, str] = {
    "error": "bold",
    "step": "bold",
    "command": "italic",
    "generation_current": "bold",
}


def get_user_theme_path() -> Path:
    """Get the user theme path (``~/.config/nixgen/theme.toml``)."""
    return get_config_dir() / "theme.toml"


def get_bundled_theme_path() -> Path:
    """Get the path of the bundled default theme."""
    return resources.files("nixgen.data").joinpath("theme.toml")  # type: ignore[return-value]


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """Read the ``[colors]`` table of a theme file.

    Non-string values are skipped; they cannot be colors.

    Args:
        path: Theme file to read.

    Returns:
        Mapping of style name to color, or None if the file is missing
        or unusable.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return None
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        return None

    colors = data.get("colors", {})
    if not isinstance(colors, dict):
        logger.warning("Ignoring theme file %s: 'colors' must be a table", path)
        return None
    return {name: value for name, value in colors.items() if isinstance(value, str)}


def load_theme() -> ThemeColors:
    """Load the bundled colors merged with the user's overrides.

    Returns:
        Validated ThemeColors.
    """
    colors = _load_toml_colors(Path(get_bundled_theme_path()))
    if colors is None:
        logger.error("Bundled theme is missing, the installation may be corrupted")
        colors = {}

    user_path = get_user_theme_path()
    overrides = _load_toml_colors(user_path)
    if overrides:
        logger.debug("Applying theme overrides from %s", user_path)
        colors = {**colors, **overrides}

    try:
        return ThemeColors.model_validate(colors)
    except ValueError as e:
        logger.warning("Invalid theme, using the default colors: %s", e)
        return ThemeColors()


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Build the Rich theme for the given colors.

    Args:
        colors: Colors to use. Loaded with :func:`load_theme` when None.

    Returns:
        Rich Theme with one style per color plus ``bold_header`` and ``dim``.
    """
    if colors is None:
        colors = load_theme()

    styles: dict[str, str] = {}
    for name, color in colors.model_dump().items():
        attribute = _STYLE_ATTRIBUTES.get(name)
        styles[name] = f"{attribute} {color}" if attribute else color
    styles["bold_header"] = f"bold {colors.header}"
    styles["dim"] = colors.muted
    return Theme(styles)


_cached_theme: Theme | None = None


def get_theme() -> Theme:
    """Get the Rich theme, loading it on first use."""
    global _cached_theme
    if _cached_theme is None:
        _cached_theme = get_rich_theme()
    return _cached_theme
