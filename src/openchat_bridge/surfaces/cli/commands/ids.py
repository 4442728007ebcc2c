"""Print the runtime ids the bridge derives for OpenChat entities."""

from __future__ import annotations

import typer

from ....integrations.openchat.ids import (
    make_message_uuid,
    make_room_uuid,
    make_user_uuid,
    message_key,
)

CHAT_KINDS = ("direct", "group", "channel")


def register_ids_commands(ids_app: typer.Typer, *, raise_exit) -> None:
    @ids_app.command("room")
    def ids_room(
        room_key: str = typer.Argument(..., help="Chat id, optionally with :<thread>"),
        kind: str = typer.Option("group", "--kind", help="direct, group or channel"),
    ):
        if kind not in CHAT_KINDS:
            raise_exit(f"--kind must be one of {', '.join(CHAT_KINDS)}")
        typer.echo(str(make_room_uuid(kind, room_key)))

    @ids_app.command("user")
    def ids_user(principal: str = typer.Argument(..., help="User principal text")):
        typer.echo(str(make_user_uuid(principal)))

    @ids_app.command("message")
    def ids_message(
        chat_id: str = typer.Argument(..., help="Chat id"),
        message_id: str = typer.Argument(..., help="Platform message id"),
    ):
        typer.echo(str(make_message_uuid(message_key(chat_id, message_id))))
