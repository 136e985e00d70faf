"""Custom management commands exposed through Flask's CLI."""
from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext

from config import ConfigError, load_auth_settings
from ideahub_ext.auth import get_auth_service
from ideahub_ext.db import db
from ideahub_ext.errors import AppError


@click.group(help="IdeaHub auth management commands")
def manage_cli() -> None:
    """Root Click group registered under `flask manage`."""


@manage_cli.command("init-db", help="Create all auth tables")
@with_appcontext
def init_db() -> None:
    """Create any missing tables; existing tables are left untouched."""
    db.create_all()
    click.echo("Database initialized.")


@manage_cli.command("create-admin", help="Create an administrative user")
@click.option("--username", prompt=True, help="Admin username")
@with_appcontext
def create_admin(username: str) -> None:
    password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
    try:
        user = get_auth_service().create_admin(username, password)
    except AppError as exc:
        click.secho(exc.user_msg, fg="red")
        for field, messages in (getattr(exc, "field_errors", None) or {}).items():
            for message in messages:
                click.secho(f"  {field}: {message}", fg="red")
        raise SystemExit(1)
    click.secho(f"Admin user created with id {user.id}", fg="green")


@manage_cli.command("check-config", help="Validate the auth environment settings")
def check_config() -> None:
    """Re-read the environment and report the effective settings."""
    try:
        settings = load_auth_settings()
    except ConfigError as exc:
        click.secho(str(exc), fg="red")
        raise SystemExit(1)
    click.echo(f"sms_provider={settings.sms_provider}")
    click.echo(f"session_expiry_days={settings.session_expiry_days}")
    click.echo(f"otp_expiry_minutes={settings.otp_expiry_minutes}")
    click.echo(f"rate_limit_attempts={settings.rate_limit_attempts}")
    click.echo(f"rate_limit_window_minutes={settings.rate_limit_window_minutes}")
    click.secho("Configuration OK", fg="green")


@manage_cli.command("purge-sessions", help="Delete expired sessions")
@with_appcontext
def purge_sessions() -> None:
    removed = get_auth_service().purge_expired_sessions()
    click.echo(f"Removed {removed} expired session(s).")


@manage_cli.command("prune-login-attempts", help="Delete login attempts older than the retention period")
@click.option("--days", type=click.IntRange(min=1), default=None, help="Retention in days")
@with_appcontext
def prune_login_attempts(days: int | None) -> None:
    retention = days or current_app.config["LOGIN_ATTEMPT_RETENTION_DAYS"]
    removed = get_auth_service().prune_login_attempts(retention)
    click.echo(f"Removed {removed} login attempt(s) older than {retention} day(s).")


@manage_cli.command("purge-codes", help="Delete expired one-time codes")
@with_appcontext
def purge_codes() -> None:
    removed = get_auth_service().purge_expired_codes()
    click.echo(f"Removed {removed} expired one-time code(s).")
