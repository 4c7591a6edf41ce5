# Overview: Flask CLI command groups for bootstrap, roles, settings and demo data.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to backoffice (PowerShell: $env:FLASK_APP="backoffice").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` where migrations are managed).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Roles (user ids come from the identity provider):
# - python -m flask roles assign user-123 cashier
# - python -m flask roles revoke user-123 cashier
# - python -m flask roles list [--user-id user-123]
#
# Settings:
# - python -m flask settings set tax_rate 7.5
# - python -m flask settings set currency NGN
# - python -m flask settings show
#
# Catalog and vouchers:
# - python -m flask catalog add-product --name "Coffee" --price 4.50 --barcode 0001
# - python -m flask catalog list
# - python -m flask vouchers create --code SAVE10 --value 10 --percentage --min-purchase 20
# - python -m flask vouchers list

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from .errors import CheckoutError
from .extensions import db
from .models import Product, UserRole, Voucher
from .models.auth import VALID_ROLES
from .services import role_service, settings_service, voucher_service
from .services.pricing_service import to_decimal


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet. Existing data is kept."""
    db.create_all()
    click.echo("PASS Tables created (existing tables untouched).")


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


# =============================================================================
# ROLES
# =============================================================================

@click.group('roles')
def roles_group():
    """Role grants for externally authenticated users."""


@roles_group.command('assign')
@click.argument('user_id')
@click.argument('role', type=click.Choice(VALID_ROLES))
@with_appcontext
def assign_role_cmd(user_id, role):
    role_service.assign_role(user_id, role)
    click.echo(f"PASS {user_id} now holds '{role}'")


@roles_group.command('revoke')
@click.argument('user_id')
@click.argument('role', type=click.Choice(VALID_ROLES))
@with_appcontext
def revoke_role_cmd(user_id, role):
    if role_service.revoke_role(user_id, role):
        click.echo(f"PASS Revoked '{role}' from {user_id}")
    else:
        click.echo(f"WARN  {user_id} did not hold '{role}'")


@roles_group.command('list')
@click.option('--user-id', default=None, help='Only this user')
@with_appcontext
def list_roles(user_id):
    query = db.session.query(UserRole)
    if user_id:
        query = query.filter_by(user_id=user_id)
    grants = query.order_by(UserRole.user_id, UserRole.role).all()
    if not grants:
        click.echo("No role grants found.")
        return
    for grant in grants:
        click.echo(f"{grant.user_id:<32} {grant.role}")


# =============================================================================
# SETTINGS
# =============================================================================

@click.group('settings')
def settings_group():
    """Tax rate and currency used at checkout."""


@settings_group.command('set')
@click.argument('key', type=click.Choice(sorted(settings_service.KNOWN_KEYS)))
@click.argument('value')
@click.option('--user-id', default='cli', help='Recorded as updated_by')
@with_appcontext
def set_setting_cmd(key, value, user_id):
    try:
        row = settings_service.set_setting(key, value, user_id=user_id)
    except CheckoutError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS {row.key} = {row.value}")


@settings_group.command('show')
@with_appcontext
def show_settings():
    config = settings_service.load_pricing_config()
    click.echo(f"tax_rate: {config.tax_rate} ({config.tax_rate * 100}%)")
    click.echo(f"currency: {config.currency_code} ({config.currency_symbol})")


# =============================================================================
# CATALOG
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Product catalog helpers (demo/dev data)."""


@catalog_group.command('add-product')
@click.option('--name', required=True)
@click.option('--price', required=True, help='Unit price, e.g. 4.50')
@click.option('--barcode', default=None)
@click.option('--sku', default=None)
@click.option('--category', default=None)
@with_appcontext
def add_product(name, price, barcode, sku, category):
    try:
        unit_price = to_decimal(price, "price")
    except CheckoutError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    if unit_price < 0:
        click.echo("FAIL Price cannot be negative")
        raise SystemExit(1)

    product = Product(name=name, unit_price=unit_price, barcode=barcode, sku=sku, category=category, is_active=True)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        click.echo("FAIL Barcode or SKU already in use")
        raise SystemExit(1)
    click.echo(f"PASS Created product {product.id}: {product.name} @ {product.unit_price}")


@catalog_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products(include_inactive):
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    for p in query.order_by(Product.name).all():
        status = "active" if p.is_active else "inactive"
        click.echo(f"{p.id:>5}  {p.name:<32} {p.unit_price:>12}  {p.barcode or '-':<16} {status}")


# =============================================================================
# VOUCHERS
# =============================================================================

@click.group('vouchers')
def vouchers_group():
    """Voucher administration."""


@vouchers_group.command('create')
@click.option('--code', default=None, help='Omit to generate one')
@click.option('--value', required=True)
@click.option('--percentage', is_flag=True, help='Value is a percentage of the subtotal')
@click.option('--min-purchase', default='0')
@click.option('--max-uses', type=int, default=None)
@click.option('--expires-at', default=None, help='ISO-8601, UTC assumed when no offset')
@click.option('--description', default=None)
@click.option('--user-id', default='cli', help='Recorded as created_by')
@with_appcontext
def create_voucher_cmd(code, value, percentage, min_purchase, max_uses, expires_at, description, user_id):
    data = {
        "code": code or voucher_service.generate_voucher_code(),
        "value": value,
        "is_percentage": percentage,
        "min_purchase": min_purchase,
        "max_uses": max_uses,
        "expires_at": expires_at,
        "description": description,
    }
    try:
        voucher = voucher_service.create_voucher(data, user_id=user_id)
    except CheckoutError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    kind = "%" if voucher.is_percentage else " off"
    click.echo(f"PASS Created voucher {voucher.code}: {voucher.value}{kind} (min {voucher.min_purchase})")


@vouchers_group.command('list')
@with_appcontext
def list_vouchers():
    for v in db.session.query(Voucher).order_by(Voucher.created_at.desc(), Voucher.id.desc()).all():
        uses = f"{v.uses_count}/{v.max_uses}" if v.max_uses is not None else f"{v.uses_count}/-"
        status = "active" if v.is_active else "inactive"
        click.echo(f"{v.code:<16} {'%' if v.is_percentage else '$'} {v.value:>10}  uses {uses:<10} {status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(roles_group)
    app.cli.add_command(settings_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(vouchers_group)
