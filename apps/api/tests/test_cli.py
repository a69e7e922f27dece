"""Tests for the operator CLI."""

from click.testing import CliRunner

from portal.cli import cli
from portal.services import admin_auth_service, application_service


def test_create_admin(db):
    result = CliRunner().invoke(
        cli,
        ["create-admin", "--email", "Officer@Portal.Test", "--role", "officer", "--password", "long-enough-pw"],
    )
    assert result.exit_code == 0, result.output
    assert "✅ Created officer officer@portal.test" in result.output

    login = admin_auth_service.login(db, "officer@portal.test", "long-enough-pw")
    assert login.user.role == "officer"


def test_create_admin_rejects_short_password(db):
    result = CliRunner().invoke(
        cli, ["create-admin", "--email", "a@portal.test", "--password", "short"]
    )
    assert result.exit_code == 1
    assert "❌ Password must be at least 8 characters" in result.output


def test_deactivate_admin(db, clerk):
    result = CliRunner().invoke(cli, ["deactivate-admin", "--email", clerk.email])
    assert result.exit_code == 0
    db.refresh(clerk)
    assert clerk.is_active is False


def test_deactivate_unknown_admin(db):
    result = CliRunner().invoke(cli, ["deactivate-admin", "--email", "ghost@portal.test"])
    assert result.exit_code == 1
    assert "Admin not found" in result.output


def test_purge_admin_sessions(db, clerk):
    result = CliRunner().invoke(cli, ["purge-admin-sessions"])
    assert result.exit_code == 0
    assert "Removed 0 expired session(s)" in result.output


def test_verify_audit_chain(db, draft_application):
    application_service.submit(db, draft_application.id, "consent-1")

    result = CliRunner().invoke(cli, ["verify-audit-chain"])
    assert result.exit_code == 0
    assert f"✅ {draft_application.id}: 1 event(s) ok" in result.output
