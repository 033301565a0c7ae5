"""Record commands: records, export, import."""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from ...io.serializers import ValidationError
from .. import views
from ..app import DataDirOption, app, get_catalog, get_settings, get_store


@app.command()
def records(
    exercise: Annotated[Optional[str], typer.Argument(help="Only this exercise id")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Show personal records.
    """
    store = get_store(data_dir)
    catalog = get_catalog()
    settings = get_settings()

    found = store.get_records_for_exercise(exercise) if exercise else store.all_records()
    if not found:
        views.print_info("No personal records yet.")
        return
    views.console.print(views.format_records_table(found, catalog, settings.units))


@app.command("export")
def export_data(
    output: Annotated[Path, typer.Argument(help="JSON file to write")],
    data_dir: DataDirOption = None,
) -> None:
    """
    Export all workouts, sets and records to a JSON file.
    """
    store = get_store(data_dir)
    data = store.export_all()
    with open(output, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    views.print_success(
        f"Exported {len(data['workouts'])} workouts, {len(data['sets'])} sets, "
        f"{len(data['records'])} records to {output}"
    )


@app.command("import")
def import_data(
    source: Annotated[Path, typer.Argument(help="JSON file written by 'export'")],
    data_dir: DataDirOption = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """
    Replace the training log with an export.
    """
    store = get_store(data_dir)
    try:
        with open(source, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        views.print_error(f"Cannot read {source}: {e}")
        raise typer.Exit(1)

    if not force and not views.confirm_action("This replaces all stored workouts. Continue?"):
        views.print_info("Cancelled.")
        raise typer.Exit(0)

    try:
        store.import_all(data)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    views.print_success(f"Imported from {source}")
