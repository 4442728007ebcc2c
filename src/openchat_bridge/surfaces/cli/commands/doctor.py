from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Optional

import typer

from ....core.config import BridgeConfig
from ....core.doctor import DoctorReport
from ....integrations.openchat.doctor import openchat_doctor_checks


def register_doctor_commands(
    app: typer.Typer,
    *,
    require_bridge_config: Callable[[Optional[Path]], BridgeConfig],
    raise_exit: Callable,
) -> None:
    @app.command("doctor")
    def doctor_cmd(
        path: Optional[Path] = typer.Option(None, "--path", help="Bridge root path"),
        json_output: bool = typer.Option(
            False, "--json", help="Output JSON for scripting"
        ),
    ):
        config = require_bridge_config(path)
        report = DoctorReport(checks=openchat_doctor_checks(config))
        if json_output:
            typer.echo(json.dumps(report.to_dict(), indent=2))
            if report.has_errors():
                raise typer.Exit(code=1)
            return
        for check in report.checks:
            line = f"- {check.status.upper()}: {check.message}"
            if check.fix:
                line = f"{line} Fix: {check.fix}"
            typer.echo(line)
        if report.has_errors():
            raise_exit("Doctor check failed")
        typer.echo("Doctor check passed")
