"""CLI tools for CRM administration."""

import sys

import click

from wealth_crm.db.enums import Role
from wealth_crm.db.models import User
from wealth_crm.db.session import SessionLocal


@click.group()
def cli():
    """Wealth CRM CLI tools."""
    pass


@cli.command()
def init_db():
    """
    Create all tables on the configured database.

    Production databases should be migrated with ``alembic upgrade head``;
    this is meant for local SQLite and throwaway environments.
    """
    from wealth_crm.db.base import Base
    from wealth_crm.db.session import engine

    Base.metadata.create_all(bind=engine)
    click.echo(f"✓ Created {len(Base.metadata.tables)} tables")


@cli.command()
@click.option("--email", required=True, help="User email address")
@click.option("--name", "display_name", required=True, help="Display name")
@click.option(
    "--role",
    type=click.Choice([role.value for role in Role]),
    default=Role.ADVISOR.value,
    show_default=True,
)
def create_user(email: str, display_name: str, role: str):
    """
    Create a user.

    Example:
        wealth-crm create-user --email "jane@firm.com" --name "Jane Advisor" --role advisor
    """
    db = SessionLocal()
    try:
        email = email.strip().lower()
        if db.query(User).filter(User.email == email).first():
            click.echo(f"❌ User already exists: {email}")
            sys.exit(1)

        user = User(email=email, display_name=display_name, role=role)
        db.add(user)
        db.commit()
        click.echo(f"✓ Created user {email} ({role})")
        click.echo(f"  ID: {user.id}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        sys.exit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User to issue a token for")
@click.option("--hours", type=int, default=None, help="Lifetime in hours (default: JWT_EXPIRES_HOURS)")
def issue_token(email: str, hours: int | None):
    """Print a bearer token for a user (service accounts, local testing)."""
    from wealth_crm.core.security import create_access_token

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            click.echo(f"❌ User not found: {email}")
            sys.exit(1)
        if not user.is_active:
            click.echo(f"❌ User is disabled: {email}")
            sys.exit(1)
        click.echo(create_access_token(user.id, user.role, user.token_version, expires_hours=hours))
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all tokens for a user by bumping their token_version.

    Example:
        wealth-crm revoke-sessions --email "user@example.com"
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            click.echo(f"❌ User not found: {email}")
            sys.exit(1)

        old_version = user.token_version
        user.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        sys.exit(1)
    finally:
        db.close()


@cli.command()
def seed_workflows():
    """Create the built-in workflow templates that are missing."""
    from wealth_crm.services import workflow_service

    db = SessionLocal()
    try:
        created = workflow_service.seed_default_templates(db)
        if not created:
            click.echo("✓ Default workflow templates already present")
        for template in created:
            click.echo(f"✓ Created template: {template.name}")
    finally:
        db.close()


@cli.command()
def recalculate_profitability():
    """Re-run profitability scoring over every stored row (after cost rate changes)."""
    from wealth_crm.services import analytics_service

    db = SessionLocal()
    try:
        count = analytics_service.recalculate_all_profitability(db)
        click.echo(f"✓ Recalculated {count} profitability rows")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
