# Overview: Flask CLI command groups for bootstrap, inspection, and operations.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "app:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent; migrations are preferred in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users and tokens:
# - python -m flask users create --name "Asha" --email asha@milko.local [--admin]
# - python -m flask users token asha@milko.local
#   Issue a bearer token for API calls.
# - python -m flask users revoke <token>
#
# Products:
# - python -m flask products create --name "Cow Milk" --price 60.00 [--inactive]
#
# Subscriptions:
# - python -m flask subscriptions list [--status active]
# - python -m flask subscriptions activate 12
#   Manually activate after out-of-band payment confirmation.

from decimal import Decimal, InvalidOperation

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .models.auth import ROLE_ADMIN, ROLE_CUSTOMER
from .services import session_service
from .services.container import get_services
from .validation import NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--admin', 'is_admin', is_flag=True, help='Create an admin instead of a customer')
@with_appcontext
def create_user_cli(name, email, is_admin):
    """Create a customer (or admin) account."""
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"FAIL User '{email}' already exists")
        return

    user = User(name=name.strip(), email=email, role=ROLE_ADMIN if is_admin else ROLE_CUSTOMER)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created {user.role}: {user.name} ({user.email}) ID {user.id}")


@users_group.command('token')
@click.argument('email')
@with_appcontext
def issue_token_cli(email):
    """Issue a bearer token for a user."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return
    try:
        session, token = session_service.create_session(user.id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Token (expires {session.expires_at.isoformat()}Z):")
    click.echo(token)


@users_group.command('revoke')
@click.argument('token')
@with_appcontext
def revoke_token_cli(token):
    """Revoke a bearer token."""
    if session_service.revoke_session(token.strip()):
        click.echo("PASS Token revoked")
    else:
        click.echo("FAIL Token not found or already revoked")


@click.group('products')
def products_group():
    """Product seed commands."""


@products_group.command('create')
@click.option('--name', prompt=True, help='Product name')
@click.option('--price', prompt=True, help='Price per litre, e.g. 60.00')
@click.option('--description', default=None, help='Optional description')
@click.option('--inactive', is_flag=True, help='Create as unavailable')
@with_appcontext
def create_product_cli(name, price, description, inactive):
    try:
        price_dec = Decimal(str(price))
    except InvalidOperation:
        click.echo(f"FAIL Invalid price: {price}")
        return
    if price_dec < 0:
        click.echo("FAIL Price must be >= 0")
        return

    product = Product(name=name.strip(), description=description, price_per_unit=price_dec, is_active=not inactive)
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product {product.id}: {product.name} @ {product.price_per_unit}/unit")


@click.group('subscriptions')
def subscriptions_group():
    """Subscription inspection and operator commands."""


@subscriptions_group.command('list')
@click.option('--status', type=click.Choice(['pending', 'active', 'paused', 'cancelled']), default=None)
@with_appcontext
def list_subscriptions_cli(status):
    subscriptions = get_services().subscriptions.list_all(status=status)
    if not subscriptions:
        click.echo("No subscriptions found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'ID':<6} {'User':<6} {'Product':<8} {'Status':<10} {'Qty':<8} {'Start':<12} {'End':<12} {'Order'}")
    click.echo("="*96)
    for s in subscriptions:
        click.echo(
            f"{s.id:<6} {s.user_id:<6} {s.product_id:<8} {s.status:<10} {str(s.daily_quantity):<8} "
            f"{s.start_date.isoformat():<12} {s.end_date.isoformat():<12} {s.external_order_id or '-'}"
        )
    click.echo("="*96 + "\n")


@subscriptions_group.command('activate')
@click.argument('subscription_id', type=int)
@with_appcontext
def activate_subscription_cli(subscription_id):
    """Activate a subscription and generate its delivery schedule."""
    try:
        result = get_services().subscriptions.activate(subscription_id)
    except (NotFoundError, ValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    state = "activated" if result.activated else f"already {result.subscription.status}"
    click.echo(f"PASS Subscription {subscription_id} {state}; {len(result.scheduled_dates)} deliveries scheduled")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(subscriptions_group)
