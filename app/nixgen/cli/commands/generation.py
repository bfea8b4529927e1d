"""Generation commands.

This module provides the `nixgen generation` commands for listing,
comparing, switching, rolling back and deleting the generations of a
profile.
"""

import json
from datetime import timedelta
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from nixgen.cli.types import confirm, fail, get_profile_name, get_settings, is_verbose
from nixgen.core.activation import ActivationEngine, find_rollback_target
from nixgen.core.deletion import DeletionExecutor
from nixgen.core.diff import DiffEngine
from nixgen.core.errors import NixgenError, ValidationError
from nixgen.core.privilege import ensure_root
from nixgen.core.profile import ProfileStore
from nixgen.core.retention import resolve_removals
from nixgen.core.timespan import TimeSpanError, parse_timespan
from nixgen.models.activation import ActivationOutcome
from nixgen.models.deletion import DeletionSpec, Resolution, ResolutionStatus
from nixgen.models.generation import Generation
from nixgen.utils.formatting import (
    console,
    create_generation_table,
    format_generation_row,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Manage NixOS generations.",
    no_args_is_help=True,
)


@app.command("list")
def list_generations(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """List the generations of a profile.

    Examples:
        nixgen generation list
        nixgen -p work generation list --json
    """
    settings = get_settings()
    profile_name = get_profile_name(ctx, settings)

    try:
        generations = ProfileStore(profile_name).gather_generations()
    except NixgenError as e:
        fail(e)

    if json_output:
        console.print_json(json.dumps([g.to_dict() for g in generations]))
        return

    if not generations:
        print_info(f"No generations found in profile '{profile_name}'.")
        return

    table = create_generation_table(title=f"Generations ({profile_name})")
    for generation in generations:
        table.add_row(*format_generation_row(generation))
    console.print(table)


@app.command()
def diff(
    ctx: typer.Context,
    before: Annotated[int, typer.Argument(help="Generation to compare from.", min=1)],
    after: Annotated[int, typer.Argument(help="Generation to compare to.", min=1)],
) -> None:
    """Show the package differences between two generations."""
    settings = get_settings()
    store = ProfileStore(get_profile_name(ctx, settings))

    try:
        store.get_generation(before)
        store.get_generation(after)
    except NixgenError as e:
        fail(e)

    engine = DiffEngine(use_nvd=settings.use_nvd, verbose=is_verbose(ctx))
    report = engine.diff(store.generation_link(before), store.generation_link(after))
    if not report.success:
        raise typer.Exit(code=report.returncode or 1)


@app.command()
def switch(
    ctx: typer.Context,
    number: Annotated[int, typer.Argument(help="Generation number to activate.", min=1)],
    dry: Annotated[
        bool,
        typer.Option(
            "--dry",
            "-d",
            help="Show what would be activated, but do not activate.",
        ),
    ] = False,
    specialisation: Annotated[
        str | None,
        typer.Option(
            "--specialisation",
            "-s",
            help="Activate the specialisation with this name.",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Automatically confirm activation.",
        ),
    ] = False,
) -> None:
    """Activate an existing generation."""
    settings = get_settings()
    profile_name = get_profile_name(ctx, settings)
    verbose = is_verbose(ctx)

    try:
        ensure_root(settings.root_command)
        target = ProfileStore(profile_name).get_generation(number)
        _show_generation_preview(target, "Switching to")
        engine = ActivationEngine(settings, confirm=confirm, verbose=verbose)
        outcome = engine.switch_generation(
            number,
            profile_name=profile_name,
            specialisation=specialisation,
            dry=dry,
            yes=yes,
        )
    except NixgenError as e:
        fail(e)

    _report_outcome(outcome, number)


@app.command()
def rollback(
    ctx: typer.Context,
    dry: Annotated[
        bool,
        typer.Option(
            "--dry",
            "-d",
            help="Show what would be activated, but do not activate.",
        ),
    ] = False,
    specialisation: Annotated[
        str | None,
        typer.Option(
            "--specialisation",
            "-s",
            help="Activate the specialisation with this name.",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Automatically confirm activation.",
        ),
    ] = False,
) -> None:
    """Activate the generation preceding the current one."""
    settings = get_settings()
    profile_name = get_profile_name(ctx, settings)
    verbose = is_verbose(ctx)

    try:
        ensure_root(settings.root_command)
        target = find_rollback_target(ProfileStore(profile_name).gather_generations())
        _show_generation_preview(target, "Rolling back to")
        engine = ActivationEngine(settings, confirm=confirm, verbose=verbose)
        outcome = engine.rollback_generation(
            profile_name=profile_name,
            specialisation=specialisation,
            dry=dry,
            yes=yes,
        )
    except NixgenError as e:
        fail(e)

    _report_outcome(outcome, target.number)


@app.command()
def delete(
    ctx: typer.Context,
    numbers: Annotated[
        list[int] | None,
        typer.Argument(help="Generation numbers to delete.", show_default=False),
    ] = None,
    all_: Annotated[
        bool,
        typer.Option(
            "--all",
            "-a",
            help="Delete all generations except the current one.",
        ),
    ] = False,
    from_: Annotated[
        int | None,
        typer.Option(
            "--from",
            help="Delete generations starting from this number (inclusive).",
            min=1,
        ),
    ] = None,
    to: Annotated[
        int | None,
        typer.Option(
            "--to",
            help="Delete generations up to this number (inclusive).",
            min=1,
        ),
    ] = None,
    older_than: Annotated[
        str | None,
        typer.Option(
            "--older-than",
            help="Delete generations older than this period (e.g. '30d', '2weeks').",
        ),
    ] = None,
    keep: Annotated[
        list[int] | None,
        typer.Option(
            "--keep",
            "-k",
            help="Always keep this generation (repeatable).",
        ),
    ] = None,
    min_: Annotated[
        int | None,
        typer.Option(
            "--min",
            "-m",
            help="Keep at least this many generations.",
            min=0,
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Automatically confirm generation deletion.",
        ),
    ] = False,
) -> None:
    """Delete generations from a profile.

    Selectors (numbers, --all, --from/--to, --older-than) are combined;
    --keep, --min and the current generation protect generations from
    deletion.

    Examples:
        nixgen generation delete 3 4 5
        nixgen generation delete --older-than 30d --min 5
        nixgen generation delete --all --keep 12 -y
    """
    settings = get_settings()
    profile_name = get_profile_name(ctx, settings)

    try:
        spec = DeletionSpec(
            all=all_,
            from_=from_,
            to=to,
            older_than=_parse_older_than(older_than),
            keep=frozenset(keep or ()),
            min=min_,
            remove=frozenset(numbers or ()),
        )
        generations = ProfileStore(profile_name).gather_generations()
        resolution = resolve_removals(generations, spec)
    except NixgenError as e:
        fail(e)

    if resolution.status is ResolutionStatus.MIN_EXCEEDS_TOTAL:
        print_info(
            f"Keeping at least {min_} generations covers all {len(generations)} "
            "generations, nothing to delete."
        )
        return
    if resolution.status is ResolutionStatus.NOTHING_TO_DELETE:
        if not spec.has_selector:
            print_info("No generations selected, pass generation numbers or a selector option.")
        else:
            print_info("No generations to delete.")
        return

    try:
        ensure_root(settings.root_command)
    except NixgenError as e:
        fail(e)

    for selector in resolution.ignored:
        print_warning(f"--{selector.replace('_', '-')} is ignored when --all is given")

    console.print(_create_deletion_table(resolution))
    console.print(f"[muted]{resolution.remaining} generation(s) will remain.[/]")

    if not yes and not confirm(f"Delete {len(resolution.removals)} generation(s)?"):
        print_info("Cancelled.")
        return

    try:
        DeletionExecutor(profile_name, verbose=is_verbose(ctx)).execute(resolution)
    except NixgenError as e:
        fail(e)

    print_success(f"Deleted {len(resolution.removals)} generation(s).")


def _parse_older_than(value: str | None) -> timedelta | None:
    """Parse --older-than, reporting malformed periods as validation errors."""
    if value is None:
        return None
    try:
        return parse_timespan(value)
    except TimeSpanError as e:
        raise ValidationError(f"invalid --older-than period: {e}") from e


def _create_deletion_table(resolution: Resolution) -> Table:
    """Create a Rich table listing the generations to delete.

    Args:
        resolution: The resolved deletion.

    Returns:
        Rich Table configured for deletion display.
    """
    table = Table(
        title="Generations to Delete",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Gen", justify="right", style="removed", no_wrap=True)
    table.add_column("Description")
    table.add_column("Date", style="muted", no_wrap=True)

    for generation in resolution.removals:
        table.add_row(
            str(generation.number), escape(generation.description), generation.display_date
        )
    return table


def _show_generation_preview(generation: Generation, heading: str) -> None:
    """Display the generation about to be activated."""
    table = create_generation_table(title=f"{heading} generation {generation.number}")
    table.add_row(*format_generation_row(generation))
    console.print(table)


def _report_outcome(outcome: ActivationOutcome, number: int) -> None:
    if outcome is ActivationOutcome.DECLINED:
        print_info("Confirmation was not given, skipping activation.")
    elif outcome is ActivationOutcome.DRY_ACTIVATED:
        print_info(f"Dry run, generation {number} was not activated.")
    else:
        print_success(f"Activated generation {number}.")
