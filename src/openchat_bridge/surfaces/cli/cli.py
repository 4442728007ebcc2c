import logging

import typer

from .commands.doctor import register_doctor_commands
from .commands.ids import register_ids_commands
from .commands.serve import register_serve_commands
from .commands.utils import (
    get_bridge_version,
    load_factory,
    raise_exit,
    require_bridge_config,
)

logger = logging.getLogger("openchat_bridge.cli")

app = typer.Typer(add_completion=False)
ids_app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"openchat-bridge {get_bridge_version()}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    # Subcommands implement behavior; `--version` is handled eagerly.
    return


def main() -> None:
    """Entrypoint for CLI execution."""
    app()


register_serve_commands(
    app,
    require_bridge_config=require_bridge_config,
    load_factory=load_factory,
    raise_exit=raise_exit,
)
register_doctor_commands(
    app,
    require_bridge_config=require_bridge_config,
    raise_exit=raise_exit,
)
app.add_typer(ids_app, name="ids")
register_ids_commands(ids_app, raise_exit=raise_exit)
