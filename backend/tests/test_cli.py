"""CLI bootstrap and inspection commands."""

from economica.extensions import db
from economica.models import Coupon, Product, User


def invoke(app, *args, **kwargs):
    return app.test_cli_runner().invoke(args=list(args), **kwargs)


def test_system_init_is_idempotent(app):
    result = invoke(app, "system", "init")
    assert result.exit_code == 0, result.output
    assert db.session.query(User).count() == 5
    assert db.session.query(User).filter_by(email="cajero@laeconomica.local").one().level == 1

    again = invoke(app, "system", "init")
    assert again.exit_code == 0
    assert "SKIP" in again.output
    assert db.session.query(User).count() == 5


def test_seed_demo_requires_flag(app):
    result = invoke(app, "system", "seed-demo")
    assert result.exit_code != 0

    result = invoke(app, "system", "seed-demo", "--force")
    assert result.exit_code == 0, result.output
    assert db.session.query(Product).count() == 4
    assert db.session.query(Coupon).filter_by(code="BIENVENIDA10").count() == 1


def test_users_create_and_list(app):
    result = invoke(
        app, "users", "create",
        "--email", "nuevo@test.local",
        "--password", "Password123",
        "--role", "LEVEL_3_MANAGER",
    )
    assert result.exit_code == 0, result.output
    assert db.session.query(User).filter_by(email="nuevo@test.local").one().role == "LEVEL_3_MANAGER"

    listing = invoke(app, "users", "list")
    assert "nuevo@test.local" in listing.output


def test_users_create_rejects_weak_password(app):
    result = invoke(app, "users", "create", "--email", "x@test.local", "--password", "short")
    assert result.exit_code != 0
    assert "at least 8 characters" in result.output


def test_perms_list_by_role(app):
    output = invoke(app, "perms", "list", "--role", "LEVEL_1_CASHIER").output
    assert "sales:process_payment" in output
    assert "sales:apply_discount" not in output


def test_perms_check(app, cashier):
    result = invoke(app, "perms", "check", cashier.email, "sales:apply_discount")
    assert result.exit_code == 0
    assert "DENIED" in result.output
