"""CLI output formatting functions.

This module contains functions for displaying per-row setup outcomes,
registration results and stored state on the command line.
"""

from typing import TYPE_CHECKING, Any, Optional

import click

from session_signup.sync.reconciler import RowOutcome

if TYPE_CHECKING:
    from session_signup.sync.engine import SetupResult

# Maximum rows listed per outcome before collapsing the rest
MAX_LISTED = 20

OUTCOME_MARKERS = {
    RowOutcome.CREATED: ("+", "green"),
    RowOutcome.RECREATED: ("!", "yellow"),
    RowOutcome.UPDATED: ("~", None),
}


def show_event_changes(result: "SetupResult") -> None:
    """
    Display the outcome of every session row.

    Args:
        result: The SetupResult of a setup run or dry run
    """
    heading = "Planned Event Changes" if result.dry_run else "Event Changes"
    click.echo(f"\n=== {heading} ===")

    if not result.events.rows:
        click.echo("  (no sessions in the sheet)")
        return

    for row_result in result.events.rows[:MAX_LISTED]:
        session = result.sessions[row_result.index]
        marker, color = OUTCOME_MARKERS[row_result.outcome]
        line = f"  {marker} {session.title} ({session.slot_title})"
        if row_result.outcome == RowOutcome.RECREATED:
            line += f" replaces missing event {row_result.previous_id}"
        click.echo(click.style(line, fg=color) if color else line)

    if len(result.events.rows) > MAX_LISTED:
        remaining = len(result.events.rows) - MAX_LISTED
        click.echo(f"  ... and {remaining} more")

    if not result.events.has_changes():
        verb = "would be" if result.dry_run else "were"
        click.echo(f"  No events {verb} created; every session already has one.")

    if result.skipped_rows:
        click.echo("\nSkipped rows:")
        for message in result.skipped_rows:
            click.echo(click.style(f"  - {message}", fg="yellow"))


def show_stored_state(
    registry_items: dict[str, str],
    last_runs: dict[str, Optional[dict[str, Any]]],
    processed_responses: int,
) -> None:
    """
    Display the stored resource ids and the last run of each sheet.

    Args:
        registry_items: Logical name -> stored id
        last_runs: Sheet name -> last run record (None if never run)
        processed_responses: Number of registrations handled so far
    """
    click.echo("=== Stored State ===\n")

    if registry_items:
        for key, value in registry_items.items():
            click.echo(f"{key}: {value}")
    else:
        click.echo("No calendar or form set up yet")

    click.echo(f"Registrations processed: {processed_responses}")

    for table_name, run in last_runs.items():
        if run is None:
            click.echo(f"{table_name}: Never run")
            continue
        status = run["status"]
        styled = click.style(status, fg="green" if status == "success" else "red")
        line = (
            f"{table_name}: Last run {run['finished_at']} ({styled}), "
            f"{run['created']} created, {run['updated']} updated, "
            f"{run['recreated']} recreated"
        )
        click.echo(line)
        if run.get("error"):
            click.echo(click.style(f"  Error: {run['error']}", fg="red"))
