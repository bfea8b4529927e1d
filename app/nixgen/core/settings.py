"""nixgen settings.

This module provides the settings model and I/O functions. Settings are
read from the first existing file of:

- ``$NIXGEN_CONFIG``
- /etc/nixos-cli/config.toml
- ~/.config/nixgen/config.toml

A missing file means every setting keeps its default.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nixgen.core.errors import NixgenError
from nixgen.core.paths import DEFAULT_PROFILE, SYSTEM_SETTINGS_LOCATION, get_user_settings_path

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "NIXGEN_CONFIG"


class ApplySettings(BaseModel):
    """Settings for ``apply``.

    Attributes:
        specialisation: Specialisation to activate by default.
        use_nom: Build through nix-output-monitor.
        imply_impure_with_tag: Add ``--impure`` automatically when a flake
            build is tagged.
    """

    model_config = ConfigDict(extra="ignore")

    specialisation: Annotated[
        str | None,
        Field(description="Default specialisation to activate"),
    ] = None
    use_nom: Annotated[
        bool,
        Field(description="Use nix-output-monitor for builds"),
    ] = False
    imply_impure_with_tag: Annotated[
        bool,
        Field(description="Imply --impure when --tag is used with flakes"),
    ] = False


class GenerationSettings(BaseModel):
    """Settings for the ``generation`` commands."""

    model_config = ConfigDict(extra="ignore")

    default_profile: Annotated[
        str,
        Field(min_length=1, description="Profile used when --profile is not given"),
    ] = DEFAULT_PROFILE


class Settings(BaseModel):
    """Top-level nixgen settings.

    Attributes:
        root_command: Command used to re-run nixgen as root.
        use_nvd: Use nvd instead of ``nix store diff-closures``.
        config_location: Directory holding the flake or configuration.nix.
        apply: Settings for ``apply``.
        generation: Settings for the ``generation`` commands.
    """

    model_config = ConfigDict(extra="ignore")

    root_command: Annotated[
        str,
        Field(min_length=1, description="Command used for privilege escalation"),
    ] = "sudo"
    use_nvd: Annotated[
        bool,
        Field(description="Use nvd for closure diffs"),
    ] = False
    config_location: Annotated[
        str,
        Field(description="Location of the NixOS configuration"),
    ] = "/etc/nixos"
    apply: ApplySettings = Field(default_factory=ApplySettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)


class SettingsError(NixgenError):
    """Base exception for settings errors."""


class SettingsParseError(SettingsError):
    """Raised when a settings file cannot be parsed."""


def _log_unknown_keys(model: type[BaseModel], data: dict[str, Any], prefix: str = "") -> None:
    """Log settings keys nixgen does not use.

    The system file is shared with nixos-cli, so tables such as
    ``[aliases]`` or ``[option]`` are expected and skipped.
    """
    for key, value in data.items():
        field = model.model_fields.get(key)
        if field is None:
            logger.debug("Ignoring unknown setting %s%s", prefix, key)
            continue
        annotation = field.annotation
        if (
            isinstance(value, dict)
            and isinstance(annotation, type)
            and issubclass(annotation, BaseModel)
        ):
            _log_unknown_keys(annotation, value, f"{prefix}{key}.")


def find_settings_path() -> Path | None:
    """Locate the settings file to load.

    Returns:
        The first existing candidate, the ``$NIXGEN_CONFIG`` path even if
        it is missing, or None when no file exists.
    """
    override = os.environ.get(SETTINGS_ENV_VAR)
    if override:
        return Path(override)

    for candidate in (SYSTEM_SETTINGS_LOCATION, get_user_settings_path()):
        if candidate.exists():
            return candidate
    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a TOML file.

    Args:
        path: Path to the settings file. If None, the default locations
            are searched.

    Returns:
        Validated Settings object.

    Raises:
        SettingsParseError: If the TOML syntax is invalid.
        SettingsError: If the file cannot be read or doesn't match the schema.
    """
    settings_path = path or find_settings_path()

    if settings_path is None or not settings_path.exists():
        logger.debug("No settings file found, using defaults")
        return Settings()

    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise SettingsParseError(f"Invalid TOML syntax in {settings_path}: {e}") from e
    except OSError as e:
        raise SettingsError(f"Failed to read settings {settings_path}: {e}") from e

    _log_unknown_keys(Settings, data)

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings in {settings_path}: {e}") from e

    logger.debug("Loaded settings from %s", settings_path)
    return settings


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        settings: The Settings object to save.
        path: Path to save to. If None, uses the per-user settings path.

    Returns:
        Path where the settings were saved.

    Raises:
        SettingsError: If the file cannot be written.
    """
    settings_path = path or get_user_settings_path()
    data = settings.model_dump(exclude_none=True)

    tmp_path: Path | None = None
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="wb",
            dir=settings_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(tmp_path, settings_path)
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise SettingsError(f"Failed to write settings {settings_path}: {e}") from e

    return settings_path


def settings_to_toml(settings: Settings) -> str:
    """Render settings as TOML text for display."""
    return tomli_w.dumps(settings.model_dump(exclude_none=True))
