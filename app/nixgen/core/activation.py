"""Activation of built and existing generations.

This module provides the ActivationEngine, which builds a configuration,
shows what changes, asks for confirmation, records the new generation in
the profile and runs ``switch-to-configuration``. If activation fails
after the profile was changed, the profile is pointed back at the
generation that was current before, so a broken generation never stays
the profile's current entry.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from types import TracebackType

from nixgen.core.configuration import (
    BuildOptions,
    Configuration,
    find_configuration,
    upgrade_channels,
)
from nixgen.core.diff import DiffEngine
from nixgen.core.errors import (
    NixgenError,
    ResourceAccessError,
    RollbackFailedError,
    ValidationError,
)
from nixgen.core.paths import CURRENT_SYSTEM, ensure_profile_directory
from nixgen.core.profile import ProfileStore
from nixgen.core.runner import execute
from nixgen.core.settings import Settings
from nixgen.core.specialisation import resolve_specialisation, switch_to_configuration_path
from nixgen.models.activation import (
    ActivationAction,
    ActivationOutcome,
    ApplyRequest,
    BuildType,
    NixOptions,
    select_activation_action,
    select_build_type,
    validate_apply_request,
)
from nixgen.models.generation import Generation, find_current
from nixgen.utils.formatting import print_info, print_step, print_success, print_warning
from nixgen.utils.shell import command_exists

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


def set_profile(profile_path: Path, closure: Path, *, verbose: bool = False) -> None:
    """Add a closure to a profile as its new current generation.

    Raises:
        CommandFailedError: If nix-env fails.
    """
    execute(
        ["nix-env", "--profile", str(profile_path), "--set", str(closure)],
        verbose=verbose,
    )


def switch_profile_generation(profile_path: Path, number: int, *, verbose: bool = False) -> None:
    """Point a profile at an existing generation.

    Raises:
        CommandFailedError: If nix-env fails.
    """
    execute(
        ["nix-env", "--profile", str(profile_path), "--switch-generation", str(number)],
        verbose=verbose,
    )


def run_switch_to_configuration(
    closure: Path,
    action: ActivationAction,
    *,
    specialisation: str | None = None,
    install_bootloader: bool = False,
    verbose: bool = False,
) -> None:
    """Run a closure's ``switch-to-configuration`` script.

    Args:
        closure: Closure to activate.
        action: Activation action.
        specialisation: Specialisation to activate instead of the base system.
        install_bootloader: Set ``NIXOS_INSTALL_BOOTLOADER=1``.
        verbose: Echo the command.

    Raises:
        CommandFailedError: If the script exits non-zero.
    """
    script = switch_to_configuration_path(closure, specialisation)
    env = {"NIXOS_INSTALL_BOOTLOADER": "1"} if install_bootloader else None
    execute([str(script), action.value], verbose=verbose, env=env)


def find_rollback_target(generations: list[Generation]) -> Generation:
    """Find the generation ``generation rollback`` switches to.

    Args:
        generations: Every generation in the profile.

    Returns:
        The highest-numbered generation below the current one.

    Raises:
        ResourceAccessError: If the current generation is unknown.
        ValidationError: If no older generation exists.
    """
    current = find_current(generations)
    if current is None:
        raise ResourceAccessError("Unable to determine the current generation")

    older = [g for g in generations if g.number < current.number]
    if not older:
        msg = f"No generation older than the current generation {current.number} exists"
        raise ValidationError(msg)
    return max(older, key=lambda g: g.number)


class ProfileRollbackGuard:
    """Restores a profile's previous generation unless committed.

    Used as a context manager around activation. Leaving the block
    without calling :meth:`commit` switches the profile back to the
    anchor generation, at most once. If that fails too, the original
    error is wrapped in a RollbackFailedError.

    Example:
        >>> with ProfileRollbackGuard(store, anchor=41) as guard:
        ...     run_switch_to_configuration(closure, ActivationAction.SWITCH)
        ...     guard.commit()
    """

    def __init__(self, store: ProfileStore, anchor: int | None, *, verbose: bool = False) -> None:
        """Initialize the guard.

        Args:
            store: Store of the profile being activated.
            anchor: Generation that was current before the profile changed,
                or None if the profile had no generation.
            verbose: Echo the rollback command.
        """
        self.store = store
        self.anchor = anchor
        self.verbose = verbose
        self._committed = False
        self._done = False

    @property
    def committed(self) -> bool:
        """Check if the activation was committed."""
        return self._committed

    def commit(self) -> None:
        """Mark the activation as successful; disables the rollback."""
        self._committed = True

    def rollback(self) -> None:
        """Switch the profile back to the anchor generation.

        Does nothing after a commit, on a second call, or when the anchor
        is already the current generation.

        Raises:
            NixgenError: If switching the profile back fails.
        """
        if self._committed or self._done:
            return
        self._done = True

        if self.anchor is None:
            logger.warning(
                "Profile %s had no previous generation to restore", self.store.profile_name
            )
            return

        try:
            current = self.store.current_generation_number()
        except ResourceAccessError:
            current = None
        if current == self.anchor:
            logger.debug("Generation %d is already current, nothing to roll back", self.anchor)
            return

        print_step("Rolling back system profile...")
        switch_profile_generation(self.store.profile_path, self.anchor, verbose=self.verbose)
        logger.info("Restored profile %s to generation %d", self.store.profile_name, self.anchor)

    def __enter__(self) -> ProfileRollbackGuard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if self._committed:
            return False

        try:
            self.rollback()
        except NixgenError as rollback_error:
            if exc is None:
                raise
            print_warning("Make sure to roll back the system manually before deleting anything!")
            raise RollbackFailedError(exc, rollback_error, self.anchor or 0) from exc

        if exc is not None and self.anchor is not None:
            print_warning(f"Activation failed, profile restored to generation {self.anchor}")
        return False


class ActivationEngine:
    """Builds and activates NixOS generations.

    Attributes:
        settings: nixgen settings.
        confirm: Callback asking the operator a yes/no question.
        verbose: Echo the commands being executed.
        profile_dir: Optional override for the profile directory.
        current_system: Closure of the running system, used for diffs.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        confirm: ConfirmCallback,
        verbose: bool = False,
        profile_dir: Path | None = None,
        current_system: Path = CURRENT_SYSTEM,
    ) -> None:
        self.settings = settings
        self.confirm = confirm
        self.verbose = verbose
        self.profile_dir = profile_dir
        self.current_system = current_system
        self.diff_engine = DiffEngine(use_nvd=settings.use_nvd, verbose=verbose)

    def store(self, profile_name: str) -> ProfileStore:
        """Create the ProfileStore for a profile."""
        return ProfileStore(profile_name, self.profile_dir)

    def apply(self, request: ApplyRequest) -> ActivationOutcome:
        """Build a configuration and activate it.

        Args:
            request: The apply parameters.

        Returns:
            How the pipeline terminated.

        Raises:
            ValidationError: If the flags conflict.
            ConfigurationError: If no configuration can be found.
            ResourceAccessError: If the build result or profile can't be read.
            CommandFailedError: If a build or activation command fails.
            RollbackFailedError: If activation and the profile rollback failed.
        """
        validate_apply_request(request)
        build_type = select_build_type(request)

        if request.verbose:
            print_step("Looking for configuration...")
        configuration = find_configuration(
            self.settings.config_location,
            request.includes,
            request.flake_ref,
        )
        nix_options = self._resolve_nix_options(request, configuration)

        if request.upgrade_channels or request.upgrade_all_channels:
            self._upgrade_channels(configuration, request.upgrade_all_channels)

        print_step("Building VM..." if build_type.is_vm else "Building configuration...")

        dry_build = request.dry and build_type is BuildType.SYSTEM
        output = request.output.absolute() if request.output is not None else None
        options = BuildOptions(
            result_location=output,
            dry_build=dry_build,
            use_nom=self._resolve_use_nom(request),
            generation_tag=request.tag,
            verbose=request.verbose,
            nix_options=nix_options,
        )
        result = configuration.build(build_type, options)

        if dry_build:
            logger.info("Dry build, no activation will be performed")
            return ActivationOutcome.BUILT
        if result is None:
            raise ResourceAccessError("The build did not report an output path")

        if build_type.is_vm:
            return self._report_vm(result)

        if build_type is BuildType.SYSTEM:
            print_success(f"Built {result}")
            return ActivationOutcome.BUILT

        print_step("Comparing changes...")
        self.diff_engine.diff(self.current_system, result)

        if not request.yes and not self.confirm("Activate this configuration?"):
            return ActivationOutcome.DECLINED

        specialisation = resolve_specialisation(
            result,
            request.specialisation,
            self.settings.apply.specialisation,
        )
        action = select_activation_action(request.dry, request.no_activate, request.no_boot)

        if request.dry:
            if action is not ActivationAction.DRY_ACTIVATE:
                print_info("Dry run, skipping activation")
                return ActivationOutcome.BUILT
            print_step("Activating (dry run)...")
            run_switch_to_configuration(
                result,
                action,
                specialisation=specialisation,
                verbose=request.verbose,
            )
            return ActivationOutcome.DRY_ACTIVATED

        store = self.store(request.profile_name)
        anchor = self._rollback_anchor(store)

        if request.verbose:
            print_step("Setting system profile...")
        self._ensure_profile_directory(store)
        set_profile(store.profile_path, result, verbose=request.verbose)

        with ProfileRollbackGuard(store, anchor, verbose=request.verbose) as guard:
            print_step("Activating...")
            run_switch_to_configuration(
                result,
                action,
                specialisation=specialisation,
                install_bootloader=request.install_bootloader,
                verbose=request.verbose,
            )
            guard.commit()

        return ActivationOutcome.ACTIVATED

    def switch_generation(
        self,
        number: int,
        *,
        profile_name: str,
        specialisation: str | None = None,
        dry: bool = False,
        yes: bool = False,
    ) -> ActivationOutcome:
        """Activate an existing generation.

        Args:
            number: Generation to activate.
            profile_name: Profile the generation belongs to.
            specialisation: Specialisation to activate.
            dry: Only show what activation would change.
            yes: Skip the confirmation prompt.

        Returns:
            How the switch terminated.

        Raises:
            ResourceAccessError: If the generation does not exist.
            PermissionDeniedError: If the generation cannot be accessed.
            CommandFailedError: If switching or activation fails.
            RollbackFailedError: If activation and the profile rollback failed.
        """
        store = self.store(profile_name)
        store.get_generation(number)
        closure = store.generation_link(number).resolve()

        print_step("Comparing changes...")
        self.diff_engine.diff(self.current_system, closure)

        if not yes and not self.confirm(f"Activate generation {number}?"):
            return ActivationOutcome.DECLINED

        resolved = resolve_specialisation(
            closure, specialisation, self.settings.apply.specialisation
        )

        if dry:
            print_step(f"Activating generation {number} (dry run)...")
            run_switch_to_configuration(
                closure,
                ActivationAction.DRY_ACTIVATE,
                specialisation=resolved,
                verbose=self.verbose,
            )
            return ActivationOutcome.DRY_ACTIVATED

        anchor = store.current_generation_number()
        switch_profile_generation(store.profile_path, number, verbose=self.verbose)

        with ProfileRollbackGuard(store, anchor, verbose=self.verbose) as guard:
            print_step(f"Activating generation {number}...")
            run_switch_to_configuration(
                closure,
                ActivationAction.SWITCH,
                specialisation=resolved,
                verbose=self.verbose,
            )
            guard.commit()

        return ActivationOutcome.ACTIVATED

    def rollback_generation(
        self,
        *,
        profile_name: str,
        specialisation: str | None = None,
        dry: bool = False,
        yes: bool = False,
    ) -> ActivationOutcome:
        """Activate the generation preceding the current one.

        Raises:
            ValidationError: If there is no older generation.
            ResourceAccessError: If the current generation is unknown.
        """
        target = find_rollback_target(self.store(profile_name).gather_generations())
        return self.switch_generation(
            target.number,
            profile_name=profile_name,
            specialisation=specialisation,
            dry=dry,
            yes=yes,
        )

    def _resolve_nix_options(
        self, request: ApplyRequest, configuration: Configuration
    ) -> NixOptions:
        """Check that tagged flake builds may read the environment."""
        nix_options = request.nix_options
        if request.tag and configuration.is_flake and not nix_options.impure:
            if not self.settings.apply.imply_impure_with_tag:
                msg = "--impure is required when using --tag for flake configurations"
                raise ValidationError(msg)
            nix_options = replace(nix_options, impure=True)
        return nix_options

    def _resolve_use_nom(self, request: ApplyRequest) -> bool:
        use_nom = request.use_nom or self.settings.apply.use_nom
        if use_nom and not command_exists("nom"):
            logger.warning("nix-output-monitor is enabled, but nom is not executable")
            logger.warning("Falling back to nix for building")
            return False
        return use_nom

    def _upgrade_channels(self, configuration: Configuration, upgrade_all: bool) -> None:
        if configuration.is_flake:
            logger.warning("Channels are not used by flake configurations, skipping upgrade")
            return

        print_step("Upgrading channels...")
        try:
            upgrade_channels(upgrade_all=upgrade_all, verbose=self.verbose)
        except NixgenError as e:
            logger.warning("Failed to upgrade channels: %s", e)
            logger.warning("Continuing with existing channels")

    def _report_vm(self, result: Path) -> ActivationOutcome:
        scripts = sorted(result.glob("bin/run-*-vm"))
        if not scripts:
            msg = f"Failed to find VM script; look in {result} for the script to run the VM"
            raise ResourceAccessError(msg)
        print_success(f"Done. The virtual machine can be started by running {scripts[0]}")
        return ActivationOutcome.VM_BUILT

    def _rollback_anchor(self, store: ProfileStore) -> int | None:
        """Capture the current generation before the profile changes."""
        if not os.path.lexists(store.profile_path):
            logger.info("Profile %s has no generations yet", store.profile_name)
            return None
        return store.current_generation_number()

    def _ensure_profile_directory(self, store: ProfileStore) -> None:
        if self.profile_dir is not None or store.profile_dir.exists():
            return
        try:
            ensure_profile_directory(store.profile_name)
        except RuntimeError as e:
            raise ResourceAccessError(str(e)) from e
