"""Path management for nixgen.

Provides the Nix profile locations nixgen operates on, together with
XDG-compliant paths for nixgen's own configuration.

Nix locations:
- System profile: /nix/var/nix/profiles/system
- Named profiles: /nix/var/nix/profiles/system-profiles/<name>
- Running system: /run/current-system

XDG defaults:
- Config: ~/.config/nixgen/
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "nixgen"

NIX_PROFILE_DIRECTORY = Path("/nix/var/nix/profiles")
NIX_SYSTEM_PROFILE_DIRECTORY = NIX_PROFILE_DIRECTORY / "system-profiles"
NIX_CHANNEL_DIRECTORY = NIX_PROFILE_DIRECTORY / "per-user" / "root" / "channels"
CURRENT_SYSTEM = Path("/run/current-system")

# System-wide settings file, also embedded in every built closure
SYSTEM_SETTINGS_LOCATION = Path("/etc/nixos-cli/config.toml")

DEFAULT_PROFILE = "system"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/nixgen/ (or XDG_CONFIG_HOME/nixgen/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_user_settings_path() -> Path:
    """Get the per-user settings file path.

    Returns:
        Path to ~/.config/nixgen/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_profile_directory(profile_name: str = DEFAULT_PROFILE) -> Path:
    """Get the directory holding a profile's generation links.

    The ``system`` profile lives directly in /nix/var/nix/profiles; every
    other profile is kept under the system-profiles subdirectory.

    Args:
        profile_name: Name of the profile.

    Returns:
        Directory containing ``<profile>`` and ``<profile>-<N>-link`` entries.
    """
    if profile_name == DEFAULT_PROFILE:
        return NIX_PROFILE_DIRECTORY
    return NIX_SYSTEM_PROFILE_DIRECTORY


def ensure_profile_directory(profile_name: str = DEFAULT_PROFILE) -> Path:
    """Create the profile directory if it doesn't exist.

    The system-profiles directory is not always present and has to be
    created before ``nix-env`` can write a named profile into it.

    Args:
        profile_name: Name of the profile.

    Returns:
        The created/existing directory path.

    Raises:
        RuntimeError: If the directory cannot be created.
    """
    path = get_profile_directory(profile_name)
    try:
        path.mkdir(mode=0o755, parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create profile directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create profile directory {path}: {e}"
        raise RuntimeError(msg) from e
    return path
