# Overview: Flask CLI command groups for bootstrap and user management.

# backend/shopstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "..."]
#   Idempotent bootstrap: creates tables, default categories and the admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username staff1 --email staff1@shop.local --password "..." --role staff

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, User
from .models.auth import ROLES, ROLE_ADMIN, ROLE_STAFF
from .errors import StockError
from .services.auth_service import create_user


DEFAULT_CATEGORIES = [
    ("Áo thun", "ao-thun", "T-shirts"),
    ("Quần jeans", "quan-jeans", "Jeans"),
    ("Áo sơ mi", "ao-so-mi", "Shirts, office and casual"),
    ("Váy đầm", "vay-dam", "Dresses"),
    ("Áo khoác", "ao-khoac", "Jackets and coats"),
    ("Quần short", "quan-short", "Shorts"),
    ("Phụ kiện", "phu-kien", "Belts, hats, bags"),
]


def seed_default_categories() -> int:
    """Insert the default categories when the table is empty. Returns rows added."""
    if db.session.query(Category.id).first() is not None:
        return 0
    for name, slug, description in DEFAULT_CATEGORIES:
        db.session.add(Category(name=name, slug=slug, description=description))
    db.session.commit()
    return len(DEFAULT_CATEGORIES)


@click.group("system")
def system_group():
    """System bootstrap and repair commands."""


@system_group.command("init")
@click.option("--admin-username", default="admin", show_default=True)
@click.option("--admin-email", default="admin@shopstock.local", show_default=True)
@click.option("--admin-password", default="Admin12345", show_default=True)
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """Create tables, default categories and an admin user (idempotent)."""
    click.echo("START Initializing shopstock...")

    db.create_all()

    added = seed_default_categories()
    if added:
        click.echo(f"PASS Created {added} default categories")
    else:
        click.echo("PASS Categories exist, skipping")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            user = create_user(
                admin_username,
                admin_email,
                admin_password,
                name="Administrator",
                role=ROLE_ADMIN,
            )
        except StockError as e:
            raise click.ClickException(f"Failed to create admin: {e.message}")
        click.echo(f"PASS Created admin user: {user.username} ({user.email})")
        click.echo("SECURITY Change the admin password before going live!")

    click.echo("DONE shopstock initialized")


@system_group.command("reset-db")
@click.option("--yes", is_flag=True, help="Confirm dropping all tables.")
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables. DEV/TEST only."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group("users")
def users_group():
    """User inspection and bootstrap."""


@users_group.command("list")
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users")
        return
    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>4}  {u.username:<20} {u.email:<32} {u.role:<8} {status}")


@users_group.command("create")
@click.option("--username", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--name", default=None)
@click.option("--role", type=click.Choice(ROLES), default=ROLE_STAFF, show_default=True)
@with_appcontext
def create_user_command(username, email, password, name, role):
    try:
        user = create_user(username, email, password, name=name, role=role)
    except StockError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.username} (ID: {user.id}) with role '{user.role}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
