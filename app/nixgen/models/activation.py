"""Activation models.

This module defines how a build is performed and how the resulting
closure is activated, derived from the flags given to ``apply``,
``generation switch`` and ``generation rollback``.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from nixgen.core.errors import ValidationError
from nixgen.core.paths import DEFAULT_PROFILE


class BuildType(Enum):
    """What to build from the configuration.

    Attributes:
        SYSTEM: Build the system closure only.
        SYSTEM_ACTIVATION: Build the system closure and activate it.
        VM: Build a QEMU VM runner script.
        VM_WITH_BOOTLOADER: Build a VM runner script that boots via a bootloader.
    """

    SYSTEM = "system"
    SYSTEM_ACTIVATION = "system-activation"
    VM = "vm"
    VM_WITH_BOOTLOADER = "vm-with-bootloader"

    @property
    def build_attr(self) -> str:
        """Attribute under ``config.system.build`` to build."""
        if self is BuildType.VM:
            return "vm"
        if self is BuildType.VM_WITH_BOOTLOADER:
            return "vmWithBootLoader"
        return "toplevel"

    @property
    def is_vm(self) -> bool:
        """Check if this build produces a VM."""
        return self in (BuildType.VM, BuildType.VM_WITH_BOOTLOADER)


class ActivationAction(Enum):
    """Argument passed to ``switch-to-configuration``.

    Attributes:
        SWITCH: Activate now and make it the boot default.
        BOOT: Make it the boot default without activating.
        TEST: Activate now without adding a boot entry.
        DRY_ACTIVATE: Show what activation would change.
    """

    SWITCH = "switch"
    BOOT = "boot"
    TEST = "test"
    DRY_ACTIVATE = "dry-activate"


class ActivationOutcome(Enum):
    """How an activation pipeline terminated successfully.

    Attributes:
        ACTIVATED: The closure was activated.
        DRY_ACTIVATED: ``dry-activate`` ran; nothing was changed.
        BUILT: The closure was built; no activation was requested.
        VM_BUILT: A VM runner script was built.
        DECLINED: The operator declined the confirmation prompt.
    """

    ACTIVATED = "activated"
    DRY_ACTIVATED = "dry_activated"
    BUILT = "built"
    VM_BUILT = "vm_built"
    DECLINED = "declined"


@dataclass(frozen=True, slots=True)
class NixOptions:
    """Nix options forwarded to build and evaluation commands."""

    impure: bool = False
    show_trace: bool = False
    keep_going: bool = False
    options: tuple[tuple[str, str], ...] = ()

    def to_args(self, *, flake: bool = True) -> list[str]:
        """Convert to command-line arguments for ``nix``/``nix-build``.

        ``--impure`` only exists for flake commands and is dropped otherwise.
        """
        args: list[str] = []
        if self.impure and flake:
            args.append("--impure")
        if self.show_trace:
            args.append("--show-trace")
        if self.keep_going:
            args.append("--keep-going")
        for name, value in self.options:
            args.extend(["--option", name, value])
        return args


@dataclass(frozen=True, slots=True)
class ApplyRequest:
    """Parameters of an ``apply`` run.

    Attributes:
        dry: Show what would be built/activated without changing the system.
        no_activate: Do not activate the built configuration.
        no_boot: Do not create a boot entry.
        install_bootloader: (Re)install the bootloader.
        vm: Build a VM script.
        vm_with_bootloader: Build a VM script with a bootloader.
        output: Symlink the build result to this location.
        profile_name: Profile to store the generation in.
        specialisation: Specialisation to activate.
        tag: Description stored in the new generation.
        yes: Skip the confirmation prompt.
        use_nom: Build through nix-output-monitor.
        flake_ref: Flake ref to build instead of the discovered configuration.
        upgrade_channels: Upgrade the root user's ``nixos`` channel first.
        upgrade_all_channels: Upgrade all of the root user's channels first.
        includes: Extra ``-I`` search path entries.
        verbose: Echo the commands being executed.
        nix_options: Options forwarded to Nix.
    """

    dry: bool = False
    no_activate: bool = False
    no_boot: bool = False
    install_bootloader: bool = False
    vm: bool = False
    vm_with_bootloader: bool = False
    output: Path | None = None
    profile_name: str = DEFAULT_PROFILE
    specialisation: str | None = None
    tag: str | None = None
    yes: bool = False
    use_nom: bool = False
    flake_ref: str | None = None
    upgrade_channels: bool = False
    upgrade_all_channels: bool = False
    includes: tuple[str, ...] = ()
    verbose: bool = False
    nix_options: NixOptions = field(default_factory=NixOptions)


def select_build_type(request: ApplyRequest) -> BuildType:
    """Derive the build type from the apply flags.

    Args:
        request: The apply parameters.

    Returns:
        BuildType to build.
    """
    if request.vm:
        return BuildType.VM
    if request.vm_with_bootloader:
        return BuildType.VM_WITH_BOOTLOADER
    if request.no_activate and request.no_boot:
        return BuildType.SYSTEM
    return BuildType.SYSTEM_ACTIVATION


def select_activation_action(dry: bool, no_activate: bool, no_boot: bool) -> ActivationAction:
    """Derive the ``switch-to-configuration`` action from the flags.

    Args:
        dry: Whether this is a dry run.
        no_activate: Whether activation was disabled.
        no_boot: Whether boot entry creation was disabled.

    Returns:
        ActivationAction to run.
    """
    if dry and not no_activate:
        return ActivationAction.DRY_ACTIVATE
    if not no_activate and not no_boot:
        return ActivationAction.SWITCH
    if no_activate and not no_boot:
        return ActivationAction.BOOT
    return ActivationAction.TEST


def validate_apply_request(request: ApplyRequest) -> None:
    """Reject flag combinations before any work begins.

    Args:
        request: The apply parameters.

    Raises:
        ValidationError: If the flags conflict.
    """
    if request.no_activate and request.no_boot and request.install_bootloader:
        msg = (
            "--install-bootloader requires activation, "
            "remove --no-activate and/or --no-boot to use this option"
        )
        raise ValidationError(msg)
    if request.vm and request.vm_with_bootloader:
        msg = "--vm and --vm-with-bootloader cannot be used together"
        raise ValidationError(msg)
    if request.dry and request.output is not None:
        msg = "--dry and --output cannot be used together"
        raise ValidationError(msg)
    if request.no_activate and request.specialisation:
        msg = "--no-activate and --specialisation cannot be used together"
        raise ValidationError(msg)
