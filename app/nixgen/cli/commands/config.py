"""Settings commands.

Provides commands to show the effective settings and to create a
per-user settings file.
"""

from typing import Annotated

import typer
from rich.syntax import Syntax

from nixgen.cli.types import fail, get_settings
from nixgen.core.errors import NixgenError
from nixgen.core.paths import get_user_settings_path
from nixgen.core.settings import Settings, find_settings_path, save_settings, settings_to_toml
from nixgen.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show and create nixgen settings.",
    no_args_is_help=True,
)


@app.command()
def show() -> None:
    """Show the effective settings as TOML."""
    settings = get_settings()
    path = find_settings_path()

    if path is not None and path.exists():
        console.print(f"[muted]# Loaded from {path}[/]")
    else:
        console.print("[muted]# No settings file found, showing defaults[/]")
    console.print(Syntax(settings_to_toml(settings), "toml", background_color="default"))


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite an existing settings file.",
        ),
    ] = False,
) -> None:
    """Create a per-user settings file with the default settings."""
    path = get_user_settings_path()

    if path.exists() and not force:
        print_error(f"Settings file already exists: {path}")
        print_info("Use --force to overwrite it.")
        raise typer.Exit(code=1)

    try:
        saved = save_settings(Settings(), path)
    except NixgenError as e:
        fail(e)

    print_success(f"Settings written to {saved}")
