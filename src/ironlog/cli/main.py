"""
CLI entry point using Typer.

Provides commands for training with a progression program:
- plates / warmup / e1rm: plate math and strength calculators
- rest / interval / emom: live timers
- next / workout: plan and run the next training day
- history / records / status: review progress
- export / import: back up and restore the training log
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from . import views
from .app import app
from .commands import records, tools, training  # noqa: F401  (registers commands)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    """
    Strength training log with linear progression, plate math and rest timers.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=views.console, show_path=False)],
        force=True,
    )


if __name__ == "__main__":
    app()
