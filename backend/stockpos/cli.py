# Overview: Flask CLI command groups for bootstrap, export, reporting and maintenance.

# backend/stockpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent: seeds the default stock location and admin account if missing.
# - python -m flask system factory-reset --yes
#   Delete every row in every table (then re-seed with --reseed).
# - python -m flask system check-alerts
#   Raise low-stock / overdue-payment notifications (de-duplicated per day).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username jane --password secret1 --role manager
#
# Export:
# - python -m flask export table products [--output products.csv]
#
# Reports:
# - python -m flask reports metrics --filter month

import click
from flask.cli import with_appcontext

from . import get_store
from .models import TABLE_MODELS
from .models.auth import VALID_ROLES
from .services import export_service, system_service
from .services.auth_service import UserService
from .services.notification_service import NotificationService
from .services.reporting_service import ReportingEngine
from .time_utils import REPORT_FILTERS
from .validation import ConflictError, ValidationError


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Seed the default stock location and admin account when missing."""
    created = get_store().initialize()
    if created["location"] is not None:
        click.echo(f"PASS Created default location: {created['location'].name}")
    if created["admin"] is not None:
        click.echo(f"PASS Created default admin user: {created['admin'].username}")
        click.echo("WARN Change the default admin password immediately.")
    if created["location"] is None and created["admin"] is None:
        click.echo("PASS Store already initialized, nothing to do.")


@system_group.command('factory-reset')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@click.option('--reseed', is_flag=True, help='Re-create default location and admin afterwards')
@with_appcontext
def factory_reset(yes, reseed):
    """
    DANGER: Delete every row from every table.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    try:
        system_service.factory_reset(get_store(), reseed=reseed)
    except system_service.ResetError as exc:
        raise click.ClickException(str(exc))

    click.echo("PASS Factory reset complete.")
    if not reseed:
        click.echo("Run 'python -m flask system init' to re-seed defaults.")


@system_group.command('check-alerts')
@with_appcontext
def check_alerts():
    """Raise low-stock and overdue-payment notifications."""
    raised = NotificationService(get_store()).check_alerts()
    if not raised:
        click.echo("PASS No new alerts.")
    for notification in raised:
        click.echo(f"ALERT [{notification.type}] {notification.title}: {notification.body}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = UserService(get_store()).list_users()
    if not users:
        click.echo("No users found.")
        return
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} Full name")
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {user.full_name or ''}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--full-name', default=None)
@click.option('--role', type=click.Choice(VALID_ROLES), default='staff', show_default=True)
@with_appcontext
def create_user(username, password, full_name, role):
    try:
        user = UserService(get_store()).create_user(username, full_name, password, role=role)
    except (ValidationError, ConflictError) as exc:
        raise click.ClickException(str(exc))
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group('export')
def export_group():
    """Table export commands."""


@export_group.command('table')
@click.argument('name', type=click.Choice(sorted(TABLE_MODELS)))
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Write CSV to this file instead of stdout')
@with_appcontext
def export_table(name, output):
    body = export_service.export_table_csv(get_store(), name)
    if output is None:
        click.echo(body, nl=False)
        return
    with open(output, "w", encoding="utf-8", newline="") as fh:
        fh.write(body)
    click.echo(f"PASS Exported {name} to {output}")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('metrics')
@click.option('--filter', 'report_filter', type=click.Choice(REPORT_FILTERS), default='all', show_default=True)
@with_appcontext
def metrics(report_filter):
    m = ReportingEngine(get_store()).compute_metrics(report_filter)
    click.echo(f"Period:          {m['filter']}" + (f" (since {m['since']})" if m["since"] else ""))
    click.echo(f"Orders:          {m['order_count']}")
    click.echo(f"Revenue:         {_money(m['total_revenue_cents'])}")
    click.echo(f"COGS:            {_money(m['cogs_cents'])}")
    click.echo(f"Gross profit:    {_money(m['gross_profit_cents'])}")
    click.echo(f"Expenses:        {_money(m['total_expenses_cents'])}")
    click.echo(f"Net profit:      {_money(m['net_profit_cents'])}")
    click.echo(f"Margin:          {m['margin']:.1f}%")
    click.echo(f"Outstanding:     {_money(m['total_debts_cents'])}")
    click.echo(f"Products:        {m['total_products']} ({m['low_stock_count']} low)")
    click.echo(f"Health score:    {m['health_score']}/100")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(export_group)
    app.cli.add_command(reports_group)
