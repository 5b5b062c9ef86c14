# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/bookstore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-email admin@bookstore.local]
#   Create tables and an ADMIN account if no admin exists yet.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and status.
# - python -m flask users create --email curator@bookstore.local --name "Curator" --password "Password123!" --role CURATOR
#   Create a user (prompts if options are omitted).
#
# Inventory:
# - python -m flask books create --title "Dune" --price 19.99 --stock 10
#   Add a book row that orders can reference.
#
# Sessions:
# - python -m flask sessions cleanup --retention-days 30
#   Delete expired or revoked refresh grants older than the retention window.
# - python -m flask sessions revoke-user user@bookstore.local
#   Revoke every live refresh grant of one user.

import click
from flask.cli import with_appcontext

from .errors import ApiError
from .extensions import db
from .models import Book, User, UserRole
from .services import auth_service, session_service, user_service
from .validation import parse_money


DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@bookstore.local', help='Email for the bootstrap admin')
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, help='Password for the bootstrap admin')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Create all tables and a bootstrap ADMIN account. Idempotent.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing bookstore...")

    db.create_all()
    click.echo("PASS Tables ready")

    admin = db.session.query(User).filter_by(role=UserRole.ADMIN).first()
    if admin:
        click.echo(f"PASS Using existing admin: {admin.email}")
        return

    try:
        admin = user_service.create_user(admin_email, admin_password, "Administrator", role=UserRole.ADMIN)
    except ApiError as e:
        raise click.ClickException(f"Failed to create admin: {e.message}")
    click.echo(f"PASS Created admin: {admin.email}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option(
    '--role',
    type=click.Choice([role.value for role in UserRole]),
    default=UserRole.USER.value,
    show_default=True,
    help='Role',
)
@with_appcontext
def create_user_cli(email, name, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = user_service.create_user(email, password, name, role=UserRole(role))
    except auth_service.PasswordValidationError as e:
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise click.ClickException(f"Password validation failed: {e.message}")
    except ApiError as e:
        raise click.ClickException(f"Failed to create user: {e.message}")

    click.echo(f"PASS Created user: {user.email} with role '{user.role.value}' (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with role and status."""
    users = db.session.query(User).order_by(User.created_at, User.email).all()
    if not users:
        click.echo("No users found")
        return

    for user in users:
        deleted = " (deleted)" if user.deleted_at else ""
        click.echo(f"{user.id}  {user.email:<32} {user.role.value:<8} {user.status.value}{deleted}")


@click.group('books')
def books_group():
    """Inventory commands."""


@books_group.command('create')
@click.option('--title', required=True, help='Book title')
@click.option('--price', required=True, help='Unit price as a decimal string, e.g. 19.99')
@click.option('--stock', type=click.IntRange(min=0), default=0, show_default=True, help='Units in stock')
@with_appcontext
def create_book_cli(title, price, stock):
    try:
        amount = parse_money(price, "price")
    except ApiError as e:
        raise click.ClickException(e.message)

    book = Book(title=title.strip(), price=amount, stock=stock)
    db.session.add(book)
    db.session.commit()
    click.echo(f"PASS Created book: {book.title} (ID: {book.id}, stock {book.stock})")


@click.group('sessions')
def sessions_group():
    """Refresh-token maintenance commands."""


@sessions_group.command('cleanup')
@click.option('--retention-days', type=click.IntRange(min=0), default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired or revoked refresh grants older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} refresh token(s) older than {retention_days} days")


@sessions_group.command('revoke-user')
@click.argument('email')
@with_appcontext
def revoke_user_sessions_cli(email):
    user = auth_service.find_user_by_email(email)
    if not user:
        raise click.ClickException(f"User {email} not found")

    revoked = session_service.revoke_all_user_sessions(user.id)
    click.echo(f"PASS Revoked {revoked} session(s) for {user.email}")


def register_commands(app):
    """Register CLI command groups on the app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(books_group)
    app.cli.add_command(sessions_group)
