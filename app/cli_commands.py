"""
Flask CLI commands for property store maintenance.

Commands:
- flask init-db: Create missing tables
- flask properties register-group NAME: Register (or fetch) a property group
- flask properties reconcile: Finish field deletion cascades left incomplete
- flask properties list-fields: List the active custom profile attribute fields
"""

import click
from flask import current_app
from flask.cli import AppGroup
from app.database import create_all, get_session
from app.exceptions import PropertyError
from app.services.property_service import PropertyService
from app.services.custom_profile_attributes_service import get_cpa_service


properties_cli = AppGroup('properties', help='Property store maintenance.')


@properties_cli.command('register-group')
@click.argument('name')
def register_group(name):
    """Register a property group, or print the existing one."""
    service = PropertyService.from_app(current_app, get_session())
    try:
        group = service.register_property_group(name)
    except PropertyError as e:
        raise click.ClickException(e.message)
    click.echo(f'{group.name}: {group.id}')


@properties_cli.command('reconcile')
@click.option('--group', 'group_name', default=None, help='Only reconcile this property group')
def reconcile(group_name):
    """Soft-delete values that are still active under deleted fields."""
    service = PropertyService.from_app(current_app, get_session())
    try:
        group_id = service.get_property_group(group_name).id if group_name else None
        count = service.reconcile_deleted_fields(group_id)
    except PropertyError as e:
        raise click.ClickException(e.message)

    if count:
        click.echo(click.style(f'Reconciled {count} values', fg='yellow'))
    else:
        click.echo(click.style('Nothing to reconcile', fg='green'))


@properties_cli.command('list-fields')
def list_fields():
    """List active custom profile attribute fields."""
    try:
        fields = get_cpa_service().list_cpa_fields()
    except PropertyError as e:
        raise click.ClickException(e.message)

    for field in fields:
        click.echo(f'{field.id}  {field.type:<12} {field.name}')
    click.echo(f'{len(fields)} fields')


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every missing table."""
        create_all()
        click.echo(click.style('Tables created', fg='green'))

    app.cli.add_command(properties_cli)
