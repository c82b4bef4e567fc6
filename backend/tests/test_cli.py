"""
Tests for the operator CLI.
"""

from contextlib import contextmanager

import pytest
from typer.testing import CliRunner

from pos_api import cli
from pos_api.models import Order, OrderSession, Product, RestaurantTable, User
from shared.security.auth import verify_jwt


runner = CliRunner()


@pytest.fixture
def cli_db(db_session, monkeypatch):
    """Point the CLI at the test database."""

    @contextmanager
    def _context():
        yield db_session

    monkeypatch.setattr(cli, "get_db_context", _context)
    return db_session


class TestSeedAndDemoTab:
    def test_seed_creates_catalog_and_tables(self, cli_db):
        result = runner.invoke(cli.app, ["db-seed"])

        assert result.exit_code == 0
        assert cli_db.query(User).count() == 6
        assert cli_db.query(Product).count() == 3
        assert cli_db.query(RestaurantTable).count() == 20

    def test_seed_twice_is_a_no_op(self, cli_db):
        runner.invoke(cli.app, ["db-seed"])
        result = runner.invoke(cli.app, ["db-seed"])

        assert result.exit_code == 0
        assert "already present" in result.output
        assert cli_db.query(Product).count() == 3

    def test_demo_tab_opens_tab_with_numbered_order(self, cli_db):
        runner.invoke(cli.app, ["db-seed"])

        result = runner.invoke(cli.app, ["demo-tab", "T17", "--quantity", "2"])

        assert result.exit_code == 0, result.output
        order = cli_db.query(Order).one()
        assert order.order_number.startswith("ORD-")
        assert order.order_number.endswith("-0001")
        assert order.total_cents == 17800

        cli_db.expire_all()
        tab = cli_db.get(OrderSession, order.session_id)
        assert tab.status == "OPEN"
        assert tab.total_cents == 17800

    def test_demo_tab_without_seed_fails(self, cli_db):
        result = runner.invoke(cli.app, ["demo-tab", "T17"])

        assert result.exit_code == 1
        assert "db-seed" in result.output

    def test_tabs_lists_open_tabs(self, cli_db):
        runner.invoke(cli.app, ["db-seed"])
        runner.invoke(cli.app, ["demo-tab", "T3"])

        result = runner.invoke(cli.app, ["tabs"])

        assert result.exit_code == 0
        assert "T3" in result.output
        assert "1 open" in result.output


class TestStockCheck:
    def test_available(self, cli_db, product_a):
        result = runner.invoke(cli.app, ["stock-check", f"{product_a.id}:5"])

        assert result.exit_code == 0
        assert "Stock available" in result.output

    def test_shortage_lists_product(self, cli_db, product_a):
        result = runner.invoke(cli.app, ["stock-check", f"{product_a.id}:500"])

        assert result.exit_code == 1
        assert "Burger" in result.output

    def test_malformed_pair(self, cli_db):
        result = runner.invoke(cli.app, ["stock-check", "burger"])

        assert result.exit_code == 2


class TestToken:
    def test_token_carries_roles(self):
        result = runner.invoke(cli.app, ["token", "7", "--role", "MANAGER", "--role", "CASHIER"])

        assert result.exit_code == 0
        claims = verify_jwt(result.output.strip())
        assert claims["sub"] == "7"
        assert claims["roles"] == ["MANAGER", "CASHIER"]

    def test_unknown_role_rejected(self):
        result = runner.invoke(cli.app, ["token", "7", "--role", "CHEF"])

        assert result.exit_code == 2


def test_version():
    result = runner.invoke(cli.app, ["version"])

    assert result.exit_code == 0
    assert "sale" in result.output
