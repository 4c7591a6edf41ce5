"""Flask CLI commands."""

from decimal import Decimal

from backoffice.models import Product, UserRole, Voucher


def test_assign_and_list_roles(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["roles", "assign", "user-42", "cashier"])
    assert result.exit_code == 0
    assert "PASS" in result.output
    assert db_session.query(UserRole).filter_by(user_id="user-42", role="cashier").count() == 1

    result = runner.invoke(args=["roles", "list", "--user-id", "user-42"])
    assert "cashier" in result.output


def test_unknown_role_rejected(app, db_session):
    result = app.test_cli_runner().invoke(args=["roles", "assign", "user-42", "owner"])
    assert result.exit_code != 0


def test_settings_set_and_show(app, db_session):
    runner = app.test_cli_runner()
    assert runner.invoke(args=["settings", "set", "tax_rate", "7.5"]).exit_code == 0
    assert runner.invoke(args=["settings", "set", "currency", "ngn"]).exit_code == 0
    result = runner.invoke(args=["settings", "show"])
    assert "NGN" in result.output
    assert "₦" in result.output


def test_invalid_setting_fails(app, db_session):
    result = app.test_cli_runner().invoke(args=["settings", "set", "tax_rate", "250"])
    assert result.exit_code == 1
    assert "FAIL" in result.output


def test_add_product(app, db_session):
    result = app.test_cli_runner().invoke(
        args=["catalog", "add-product", "--name", "Coffee", "--price", "4.50", "--barcode", "0001"],
    )
    assert result.exit_code == 0, result.output
    product = db_session.query(Product).filter_by(barcode="0001").one()
    assert product.unit_price == Decimal("4.50")


def test_create_voucher_generates_code(app, db_session):
    result = app.test_cli_runner().invoke(
        args=["vouchers", "create", "--value", "10", "--percentage", "--min-purchase", "20"],
    )
    assert result.exit_code == 0, result.output
    voucher = db_session.query(Voucher).one()
    assert len(voucher.code) == 8
    assert voucher.is_percentage is True
