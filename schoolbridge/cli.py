"""Operator commands: ``schoolbridge-admin init-db | create-superadmin | cleanup``."""

import click
from sqlalchemy.exc import IntegrityError

from .application.use_cases.cleanup import run_cleanup
from .domain.entities import Provider, Role
from .infrastructure.db import SessionLocal, engine
from .infrastructure.models import Base, UserORM
from .infrastructure.repositories import UserRepository
from .infrastructure.security import PasswordHasher
from .interfaces.http.schemas import check_password


@click.group()
def cli():
    """SchoolBridge administration."""


@cli.command("init-db")
def init_db():
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)
    click.echo("Database tables created.")


@cli.command("create-superadmin")
@click.option("--email", prompt=True)
@click.option("--full-name", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_superadmin(email, full_name, password):
    """Bootstrap the first SuperAdmin account."""
    try:
        check_password(password)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--password")

    db = SessionLocal()
    try:
        users = UserRepository(db)
        if users.get_by_email(email):
            raise click.ClickException(f"User {email} already exists")
        users.add(UserORM(
            email=email,
            password_hash=PasswordHasher().hash(password),
            full_name=full_name,
            role=Role.SUPER_ADMIN.value,
            provider=Provider.EMAIL.value,
            is_verified=True,
            is_active=True,
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise click.ClickException(f"User {email} already exists")
    finally:
        db.close()
    click.echo(f"SuperAdmin {email.strip().lower()} created.")


@cli.command("cleanup")
def cleanup():
    """Run the expired-invitation cleanup once."""
    removed = run_cleanup()
    if removed is None:
        raise click.ClickException("Cleanup failed, see logs")
    click.echo(f"Removed {removed['invitations']} invitation(s) and {removed['sessions']} session(s).")


if __name__ == "__main__":
    cli()
