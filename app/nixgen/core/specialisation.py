"""Specialisation lookup inside built closures.

A NixOS closure may contain alternative configurations under
``specialisation/<name>/``, each with its own ``switch-to-configuration``.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from nixgen.core.paths import SYSTEM_SETTINGS_LOCATION

logger = logging.getLogger(__name__)

SWITCH_TO_CONFIGURATION = Path("bin") / "switch-to-configuration"


def collect_specialisations(closure: Path) -> list[str]:
    """List the specialisations available in a closure.

    Args:
        closure: Path to a system closure or generation link.

    Returns:
        Specialisation names, sorted. Empty if there are none or the
        directory is unreadable.
    """
    specialisation_dir = closure / "specialisation"
    try:
        entries = os.listdir(specialisation_dir)
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.debug("Failed to list specialisations in %s: %s", specialisation_dir, e)
        return []

    return sorted(name for name in entries if (specialisation_dir / name).is_dir())


def switch_to_configuration_path(closure: Path, specialisation: str | None = None) -> Path:
    """Path of the ``switch-to-configuration`` script to run.

    Args:
        closure: Path to a system closure.
        specialisation: Specialisation name, or None for the base system.

    Returns:
        Path of the activation script.
    """
    if specialisation:
        return closure / "specialisation" / specialisation / SWITCH_TO_CONFIGURATION
    return closure / SWITCH_TO_CONFIGURATION


def specialisation_exists(closure: Path, specialisation: str | None) -> bool:
    """Check whether a specialisation can be activated from a closure.

    The base configuration (None or empty name) always exists.
    """
    if not specialisation:
        return True
    return switch_to_configuration_path(closure, specialisation).exists()


def find_default_specialisation(closure: Path) -> str | None:
    """Read the default specialisation baked into a closure.

    The closure's own ``etc/nixos-cli/config.toml`` may set
    ``apply.specialisation``.

    Args:
        closure: Path to a system closure.

    Returns:
        The specialisation name, or None if unset or unreadable.
    """
    settings_path = closure / "etc" / SYSTEM_SETTINGS_LOCATION.relative_to("/etc")
    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return None
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.debug("Failed to read settings bundled in %s: %s", closure, e)
        return None

    apply_section = data.get("apply")
    if not isinstance(apply_section, dict):
        return None
    specialisation = apply_section.get("specialisation")
    if isinstance(specialisation, str) and specialisation:
        return specialisation
    return None


def resolve_specialisation(
    closure: Path,
    explicit: str | None = None,
    configured: str | None = None,
) -> str | None:
    """Decide which specialisation to activate.

    Precedence is the explicit flag, then the configured default, then
    the default bundled in the closure. A name missing from the closure
    falls back to the base configuration with a warning.

    Args:
        closure: Path to the closure about to be activated.
        explicit: Name given with ``--specialisation``.
        configured: ``apply.specialisation`` from the settings.

    Returns:
        The specialisation name, or None for the base configuration.
    """
    specialisation = explicit or configured or find_default_specialisation(closure)
    if not specialisation:
        return None

    if not specialisation_exists(closure, specialisation):
        logger.warning(
            "Specialisation '%s' does not exist in %s, using the base configuration",
            specialisation,
            closure,
        )
        available = collect_specialisations(closure)
        if available:
            logger.warning("Available specialisations: %s", ", ".join(available))
        return None

    return specialisation
