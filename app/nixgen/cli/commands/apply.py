"""Apply command implementation.

Builds a NixOS configuration and activates it, rolling the profile back
if activation fails.
"""

from pathlib import Path
from typing import Annotated

import typer

from nixgen.cli.types import confirm, fail, get_settings, is_verbose
from nixgen.core.activation import ActivationEngine
from nixgen.core.errors import NixgenError, ValidationError
from nixgen.core.paths import DEFAULT_PROFILE
from nixgen.core.privilege import ensure_root
from nixgen.models.activation import (
    ActivationOutcome,
    ApplyRequest,
    NixOptions,
    validate_apply_request,
)
from nixgen.utils.formatting import print_info, print_success

app = typer.Typer(
    help="Build and activate a NixOS configuration.",
    invoke_without_command=True,
    # Options may follow the flake ref
    context_settings={"allow_interspersed_args": True},
)


def _parse_options(values: list[str] | None) -> tuple[tuple[str, str], ...]:
    """Parse ``--option NAME=VALUE`` pairs.

    Raises:
        ValidationError: If a value has no ``=``.
    """
    options: list[tuple[str, str]] = []
    for value in values or ():
        name, sep, option_value = value.partition("=")
        if not sep or not name:
            raise ValidationError(f"--option expects NAME=VALUE, got '{value}'")
        options.append((name, option_value))
    return tuple(options)


@app.callback(invoke_without_command=True)
def apply(
    ctx: typer.Context,
    flake_ref: Annotated[
        str | None,
        typer.Argument(
            help="Flake ref to build the configuration from (default: $NIXOS_CONFIG).",
            show_default=False,
        ),
    ] = None,
    dry: Annotated[
        bool,
        typer.Option("--dry", "-d", help="Show what would be built or activated."),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Symlink the build result to this location."),
    ] = None,
    no_activate: Annotated[
        bool,
        typer.Option("--no-activate", help="Do not activate the built configuration."),
    ] = False,
    no_boot: Annotated[
        bool,
        typer.Option("--no-boot", help="Do not create a boot entry for this generation."),
    ] = False,
    install_bootloader: Annotated[
        bool,
        typer.Option("--install-bootloader", help="(Re)install the bootloader."),
    ] = False,
    vm: Annotated[
        bool,
        typer.Option("--vm", help="Build a NixOS VM script."),
    ] = False,
    vm_with_bootloader: Annotated[
        bool,
        typer.Option("--vm-with-bootloader", help="Build a NixOS VM script with a bootloader."),
    ] = False,
    tag: Annotated[
        str | None,
        typer.Option("--tag", "-t", help="Tag this generation with a description."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Automatically confirm activation."),
    ] = False,
    specialisation: Annotated[
        str | None,
        typer.Option("--specialisation", "-s", help="Activate the specialisation with this name."),
    ] = None,
    profile_name: Annotated[
        str,
        typer.Option("--profile-name", help="Store generations using this profile."),
    ] = DEFAULT_PROFILE,
    use_nom: Annotated[
        bool,
        typer.Option("--use-nom", help="Build with nix-output-monitor."),
    ] = False,
    upgrade: Annotated[
        bool,
        typer.Option("--upgrade", help="Upgrade the root user's 'nixos' channel first."),
    ] = False,
    upgrade_all: Annotated[
        bool,
        typer.Option("--upgrade-all", help="Upgrade all of the root user's channels first."),
    ] = False,
    include: Annotated[
        list[str] | None,
        typer.Option("--include", "-I", help="Add a path to the Nix search path."),
    ] = None,
    impure: Annotated[
        bool,
        typer.Option("--impure", help="Allow access to mutable paths and repositories."),
    ] = False,
    show_trace: Annotated[
        bool,
        typer.Option("--show-trace", help="Show trace information for evaluation errors."),
    ] = False,
    keep_going: Annotated[
        bool,
        typer.Option("--keep-going", help="Keep going when some derivations fail to build."),
    ] = False,
    option: Annotated[
        list[str] | None,
        typer.Option("--option", help="Set a Nix configuration option (NAME=VALUE)."),
    ] = None,
) -> None:
    """Build and activate a NixOS configuration.

    Nix options given here are forwarded to every Nix invocation.

    Examples:
        nixgen apply                      # Build, confirm and switch
        nixgen apply --dry                # Build and dry-activate
        nixgen apply --vm                 # Build a VM script
        nixgen apply .#myhost -y --tag "new kernel" --impure
    """
    if ctx.invoked_subcommand is not None:
        return

    settings = get_settings()
    verbose = is_verbose(ctx)

    try:
        request = ApplyRequest(
            dry=dry,
            no_activate=no_activate,
            no_boot=no_boot,
            install_bootloader=install_bootloader,
            vm=vm,
            vm_with_bootloader=vm_with_bootloader,
            output=output,
            profile_name=profile_name,
            specialisation=specialisation,
            tag=tag,
            yes=yes,
            use_nom=use_nom,
            flake_ref=flake_ref,
            upgrade_channels=upgrade,
            upgrade_all_channels=upgrade_all,
            includes=tuple(include or ()),
            verbose=verbose,
            nix_options=NixOptions(
                impure=impure,
                show_trace=show_trace,
                keep_going=keep_going,
                options=_parse_options(option),
            ),
        )
        validate_apply_request(request)
        ensure_root(settings.root_command)

        engine = ActivationEngine(settings, confirm=confirm, verbose=verbose)
        outcome = engine.apply(request)
    except NixgenError as e:
        fail(e)

    if outcome is ActivationOutcome.DECLINED:
        print_info("Confirmation was not given, skipping activation.")
    elif outcome is ActivationOutcome.DRY_ACTIVATED:
        print_info("Dry run, the configuration was not activated.")
    elif outcome is ActivationOutcome.ACTIVATED:
        print_success("Configuration activated.")
