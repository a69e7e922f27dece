"""CLI tools for portal administration."""

import click

from portal.core.errors import PortalError
from portal.db.enums import AdminRole
from portal.db.session import SessionLocal
from portal.services import admin_auth_service, audit_service


@click.group()
def cli():
    """Portal CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="Staff email address")
@click.option("--role", type=click.Choice([r.value for r in AdminRole]), default=AdminRole.VIEW_ONLY.value)
@click.option("--name", default=None, help="Display name")
@click.password_option(help="Initial password (min 8 characters)")
def create_admin(email: str, role: str, name: str | None, password: str):
    """
    Create a staff account.

    Example:
        python -m portal.cli create-admin --email officer@example.gov --role officer
    """
    db = SessionLocal()
    try:
        user = admin_auth_service.create_admin(db, email=email, password=password, role=role, name=name)
        click.echo(f"✅ Created {user.role} {user.email} ({user.id})")
    except PortalError as exc:
        click.echo(f"❌ {exc.message}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="Staff email address")
def deactivate_admin(email: str):
    """Disable a staff account and revoke its sessions."""
    db = SessionLocal()
    try:
        user = admin_auth_service.deactivate_admin(db, email)
        click.echo(f"✅ Deactivated {user.email}")
    except PortalError as exc:
        click.echo(f"❌ {exc.message}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
def purge_admin_sessions():
    """Delete expired staff sessions."""
    db = SessionLocal()
    try:
        removed = admin_auth_service.purge_expired_sessions(db)
        click.echo(f"✅ Removed {removed} expired session(s)")
    finally:
        db.close()


@cli.command()
@click.option("--application-id", default=None, help="Verify one application (default: all)")
def verify_audit_chain(application_id: str | None):
    """Verify status event hash chains."""
    from uuid import UUID

    db = SessionLocal()
    try:
        if application_id:
            ids = [UUID(application_id)]
        else:
            ids = audit_service.list_chained_application_ids(db)

        broken = 0
        for app_id in ids:
            result = audit_service.verify_status_chain(db, app_id)
            if result.valid:
                click.echo(f"✅ {app_id}: {result.events_checked} event(s) ok")
            else:
                broken += 1
                click.echo(f"❌ {app_id}:")
                for error in result.errors:
                    click.echo(f"   - {error}")
        if broken:
            raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    cli()
