"""NixOS configuration discovery and building.

A configuration is either a flake output
(``<uri>#nixosConfigurations.<system>``) or a legacy ``configuration.nix``
reached through ``<nixpkgs/nixos>``. Both are built by invoking Nix as a
child process.
"""

from __future__ import annotations

import logging
import os
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from nixgen.core.errors import ConfigurationError, ResourceAccessError
from nixgen.core.paths import NIX_CHANNEL_DIRECTORY
from nixgen.core.runner import execute
from nixgen.models.activation import BuildType, NixOptions

logger = logging.getLogger(__name__)

NIXOS_CONFIG_ENV_VAR = "NIXOS_CONFIG"
NIXOS_CONFIG_INCLUDE_PREFIX = "nixos-config="

# Channels containing this marker are upgraded together with ``nixos``
CHANNEL_UPDATE_MARKER = ".update-on-nixos-rebuild"


@dataclass(frozen=True, slots=True)
class BuildOptions:
    """Options for building a system closure.

    Attributes:
        result_location: Create an out-link here instead of no link at all.
        dry_build: Only show what would be built.
        use_nom: Build through nix-output-monitor.
        generation_tag: Description exported as ``NIXOS_GENERATION_TAG``.
        verbose: Echo the command and make Nix verbose.
        nix_options: Options forwarded to Nix.
    """

    result_location: Path | None = None
    dry_build: bool = False
    use_nom: bool = False
    generation_tag: str | None = None
    verbose: bool = False
    nix_options: NixOptions = field(default_factory=NixOptions)

    @property
    def env(self) -> dict[str, str]:
        """Environment variables for the build process."""
        if self.generation_tag:
            return {"NIXOS_GENERATION_TAG": self.generation_tag}
        return {}


class Configuration(ABC):
    """A buildable NixOS configuration."""

    @property
    @abstractmethod
    def is_flake(self) -> bool:
        """Check if this configuration is a flake."""

    @property
    @abstractmethod
    def directory(self) -> Path | None:
        """Local directory holding the configuration, if there is one."""

    @abstractmethod
    def build_command(self, build_type: BuildType, options: BuildOptions) -> list[str]:
        """Build the command line that builds the configuration.

        Args:
            build_type: What to build.
            options: Build options.

        Returns:
            Command and arguments.
        """

    def build(self, build_type: BuildType, options: BuildOptions) -> Path | None:
        """Build the configuration.

        The build runs inside the configuration directory when it is a
        local directory. Build progress is streamed to the terminal.

        Args:
            build_type: What to build.
            options: Build options.

        Returns:
            The store path of the result, or None for a dry build.

        Raises:
            CommandFailedError: If the build fails.
        """
        argv = self.build_command(build_type, options)
        directory = self.directory
        cwd = str(directory) if directory is not None and directory.is_dir() else None

        result = execute(
            argv,
            verbose=options.verbose,
            env=options.env,
            cwd=cwd,
            capture_stdout=True,
        )

        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            return None
        return Path(lines[-1])


@dataclass(slots=True)
class FlakeRef(Configuration):
    """A flake output selecting a NixOS system.

    Attributes:
        uri: Flake URI (path, ``github:`` ref, registry name ...).
        system: Name under ``nixosConfigurations``.
        includes: Extra ``-I`` search path entries.
    """

    uri: str
    system: str = ""
    includes: tuple[str, ...] = ()

    @classmethod
    def from_string(cls, value: str, includes: tuple[str, ...] = ()) -> FlakeRef:
        """Parse ``<uri>#<system>``; the system part is optional."""
        uri, _, system = value.partition("#")
        return cls(uri=uri, system=system, includes=includes)

    def infer_system_from_hostname(self) -> None:
        """Use the hostname as the system name if none was given."""
        if not self.system:
            self.system = socket.gethostname()

    @property
    def is_flake(self) -> bool:
        return True

    @property
    def directory(self) -> Path | None:
        path = Path(self.uri)
        return path if path.is_absolute() or self.uri.startswith(".") else None

    @property
    def attribute(self) -> str:
        """Flake attribute of the system configuration."""
        return f"{self.uri}#nixosConfigurations.{self.system}.config"

    def build_command(self, build_type: BuildType, options: BuildOptions) -> list[str]:
        nix_command = "nom" if options.use_nom else "nix"
        argv = [
            nix_command,
            "build",
            f"{self.attribute}.system.build.{build_type.build_attr}",
            "--print-out-paths",
        ]

        if options.result_location is not None:
            argv.extend(["--out-link", str(options.result_location)])
        else:
            argv.append("--no-link")

        if options.dry_build:
            argv.append("--dry-run")

        argv.extend(options.nix_options.to_args(flake=True))
        for include in self.includes:
            argv.extend(["-I", include])

        if options.verbose:
            argv.append("-v")
        return argv

    def __str__(self) -> str:
        return f"{self.uri}#{self.system}"


@dataclass(slots=True)
class LegacyConfiguration(Configuration):
    """A ``configuration.nix`` built through ``<nixpkgs/nixos>``.

    Attributes:
        location: Path of the configuration file or directory.
        includes: Extra ``-I`` search path entries.
    """

    location: Path
    includes: tuple[str, ...] = ()

    @property
    def is_flake(self) -> bool:
        return False

    @property
    def directory(self) -> Path | None:
        return self.location if self.location.is_dir() else self.location.parent

    def build_command(self, build_type: BuildType, options: BuildOptions) -> list[str]:
        nix_command = "nom-build" if options.use_nom else "nix-build"
        argv = [nix_command, "<nixpkgs/nixos>", "-A", build_type.build_attr]

        # Everything except switch/boot keeps going on build failures
        if build_type is not BuildType.SYSTEM_ACTIVATION:
            argv.append("-k")

        argv.extend(options.nix_options.to_args(flake=False))

        if options.result_location is not None:
            argv.extend(["--out-link", str(options.result_location)])
        else:
            argv.append("--no-out-link")

        if options.dry_build:
            argv.append("--dry-run")

        for include in self.includes:
            argv.extend(["-I", include])

        if options.verbose:
            argv.append("-v")
        return argv

    def __str__(self) -> str:
        return str(self.location)


def _is_flake_location(location: str) -> bool:
    """Check whether a configuration location refers to a flake."""
    if "#" in location:
        return True
    path = Path(location)
    if (path / "flake.nix").is_file():
        return True
    # Flake URIs such as github:owner/repo or flake:name
    return ":" in location and not path.exists()


def find_legacy_configuration(includes: tuple[str, ...] = ()) -> LegacyConfiguration:
    """Locate a legacy configuration.

    Looks at ``$NIXOS_CONFIG``, then a ``nixos-config=`` include, then the
    ``nixos-config`` entry of ``$NIX_PATH``.

    Args:
        includes: ``-I`` search path entries given on the command line.

    Returns:
        The located LegacyConfiguration.

    Raises:
        ConfigurationError: If no configuration is set.
        ResourceAccessError: If the configured path does not exist.
    """
    location = os.environ.get(NIXOS_CONFIG_ENV_VAR, "")
    if location:
        logger.debug("$%s is set, using it", NIXOS_CONFIG_ENV_VAR)

    if not location:
        for include in includes:
            if include.startswith(NIXOS_CONFIG_INCLUDE_PREFIX):
                location = include.removeprefix(NIXOS_CONFIG_INCLUDE_PREFIX)
                break

    if not location:
        logger.debug("$%s not set, using $NIX_PATH to find configuration", NIXOS_CONFIG_ENV_VAR)
        for entry in os.environ.get("NIX_PATH", "").split(":"):
            if entry.startswith(NIXOS_CONFIG_INCLUDE_PREFIX):
                location = entry.removeprefix(NIXOS_CONFIG_INCLUDE_PREFIX)
                break

    if not location:
        raise ConfigurationError("expected a 'nixos-config' entry in $NIX_PATH")

    path = Path(location)
    if not path.exists():
        raise ResourceAccessError(f"configuration {path} does not exist")
    if path.is_dir() and not (path / "default.nix").is_file():
        raise ResourceAccessError(f"configuration directory {path} has no default.nix")

    return LegacyConfiguration(location=path, includes=includes)


def find_configuration(
    config_location: str,
    includes: tuple[str, ...] = (),
    flake_ref: str | None = None,
) -> Configuration:
    """Resolve the configuration to build.

    An explicit flake ref wins. Otherwise ``$NIXOS_CONFIG`` (or the
    configured location) is used as a flake when it looks like one, and
    legacy discovery applies when it doesn't.

    Args:
        config_location: ``config_location`` from the settings.
        includes: ``-I`` search path entries.
        flake_ref: Flake ref given on the command line.

    Returns:
        A FlakeRef or a LegacyConfiguration.

    Raises:
        ConfigurationError: If no configuration can be found.
        ResourceAccessError: If a legacy configuration path is missing.
    """
    if flake_ref:
        flake = FlakeRef.from_string(flake_ref, includes)
        flake.infer_system_from_hostname()
        return flake

    location = os.environ.get(NIXOS_CONFIG_ENV_VAR) or config_location
    if location and _is_flake_location(location):
        flake = FlakeRef.from_string(location, includes)
        flake.infer_system_from_hostname()
        logger.info("Found flake configuration %s", flake)
        return flake

    configuration = find_legacy_configuration(includes)
    logger.info("Found legacy configuration at %s", configuration)
    return configuration


def upgrade_channels(
    upgrade_all: bool = False,
    verbose: bool = False,
    channel_dir: Path = NIX_CHANNEL_DIRECTORY,
) -> None:
    """Upgrade the root user's channels.

    Without ``upgrade_all`` only ``nixos`` and channels carrying the
    ``.update-on-nixos-rebuild`` marker are upgraded.

    Args:
        upgrade_all: Upgrade every channel.
        verbose: Echo the command.
        channel_dir: Directory of the root user's channels.

    Raises:
        CommandFailedError: If nix-channel fails.
        ResourceAccessError: If the channel directory cannot be read.
    """
    argv = ["nix-channel", "--update"]

    if not upgrade_all:
        argv.append("nixos")
        try:
            entries = sorted(channel_dir.iterdir())
        except OSError as e:
            raise ResourceAccessError(f"Cannot read channel directory {channel_dir}: {e}") from e
        for entry in entries:
            if entry.name == "nixos":
                continue
            if entry.is_dir() and (entry / CHANNEL_UPDATE_MARKER).exists():
                argv.append(entry.name)

    execute(argv, verbose=verbose)
