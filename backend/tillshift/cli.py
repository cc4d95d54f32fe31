# Overview: Flask CLI command groups for schema bootstrap and shift inspection.

# backend/tillshift/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables (idempotent). Prefer "flask db upgrade" in production.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shift inspection:
# - python -m flask shifts list --location-id store-1 --status OPEN --limit 20
#   List recent shifts with optional filters.
# - python -m flask shifts show 42
#   Show one shift and its cash movement ledger.
# - python -m flask shifts summary 42
#   Compute the current expected cash for a shift (calls the order source).
# - python -m flask shifts review-queue --location-id store-1
#   Shifts closed with a variance beyond tolerance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ShiftServiceError
from .models import ShiftStatus


def _money(cents: int | None) -> str:
    if cents is None:
        return "-"
    return f"${cents / 100:,.2f}"


def _signed_money(cents: int | None) -> str:
    if cents is None:
        return "-"
    return f"${cents / 100:+,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including closed shifts kept for audit!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


def _echo_shift_table(shifts):
    click.echo("\n" + "="*120)
    click.echo(f"{'ID':<6} {'Operator':<14} {'Location':<14} {'Status':<8} {'Opened':<20} "
               f"{'Expected':<14} {'Counted':<14} {'Variance':<12}")
    click.echo("="*120)

    for shift in shifts:
        click.echo(f"{shift.id:<6} {shift.operator_id[:14]:<14} {shift.location_id[:14]:<14} {shift.status:<8} "
                   f"{str(shift.opened_at)[:19]:<20} {_money(shift.expected_cash_cents):<14} "
                   f"{_money(shift.closing_cash_cents):<14} {_signed_money(shift.variance_cents):<12}")

    click.echo("="*120 + "\n")


@shifts_group.command('list')
@click.option('--operator-id', help='Filter by operator')
@click.option('--location-id', help='Filter by location')
@click.option('--status', type=click.Choice([s.value for s in ShiftStatus]), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(operator_id, location_id, status, limit):
    """
    List shifts, newest first.

    Example:
        flask shifts list
        flask shifts list --location-id store-1 --status OPEN
    """
    from .services import shift_service

    shifts = shift_service.list_shifts(
        operator_id=operator_id,
        location_id=location_id,
        status=status,
        limit=limit,
    )

    if not shifts:
        click.echo("No shifts found.")
        return

    _echo_shift_table(shifts)


@shifts_group.command('show')
@click.argument('session_id', type=int)
@with_appcontext
def show_shift_cli(session_id):
    """Show one shift and every cash movement recorded on it."""
    from .services import shift_service

    try:
        shift = shift_service.get_shift(session_id)
        movements = shift_service.get_shift_movements(session_id)
    except ShiftServiceError as e:
        raise click.ClickException(e.message)

    _echo_shift_table([shift])

    if shift.closing_notes:
        click.echo(f"Closing notes: {shift.closing_notes}")
    if shift.denomination_breakdown:
        click.echo(f"Denominations: {shift.denomination_breakdown}")

    if not movements:
        click.echo("No cash movements.")
        return

    click.echo(f"{'ID':<6} {'Type':<10} {'Amount':<14} {'By':<14} {'At':<20} {'Reason'}")
    for m in movements:
        reason = m.reason[:40] if m.reason else "-"
        click.echo(f"{m.id:<6} {m.movement_type:<10} {_money(m.amount_cents):<14} {m.performed_by[:14]:<14} "
                   f"{str(m.created_at)[:19]:<20} {reason}")


@shifts_group.command('summary')
@click.argument('session_id', type=int)
@with_appcontext
def summary_cli(session_id):
    """
    Compute the current expected cash for a shift.

    Not authoritative for closed shifts; their frozen figures are in "show".
    """
    from .services import reconciliation_service

    try:
        summary = reconciliation_service.compute_summary(session_id)
    except ShiftServiceError as e:
        raise click.ClickException(e.message)

    click.echo(f"Shift {summary.session_id} ({summary.status}) - {summary.operator_id} @ {summary.location_id}")
    click.echo(f"  Opening cash:   {_money(summary.opening_cash_cents)}")
    for mode, cents in summary.sales_by_mode.items():
        click.echo(f"  Sales {mode:<9} {_money(cents)}")
    click.echo(f"  Orders:         {summary.order_count}")
    click.echo(f"  Cash in:        {_money(summary.cash_in_cents)}")
    click.echo(f"  Cash out:       {_money(summary.cash_out_cents)}")
    click.echo(f"  Cash drops:     {_money(summary.cash_drop_cents)}")
    click.echo(f"  Expected cash:  {_money(summary.expected_cash_cents)}")
    for warning in summary.warnings:
        click.echo(f"  WARN {warning}")


@shifts_group.command('review-queue')
@click.option('--location-id', help='Filter by location')
@with_appcontext
def review_queue_cli(location_id):
    """List shifts closed as REVIEW."""
    from .services import shift_service

    shifts = shift_service.get_review_queue(location_id=location_id)
    if not shifts:
        click.echo("Review queue is empty.")
        return

    _echo_shift_table(shifts)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
