# Overview: Pytest coverage for the Flask CLI command groups.

from decimal import Decimal

from posledger.services import cash_service


def test_init_db_is_idempotent(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "init-db"])
    assert result.exit_code == 0
    assert "up to date" in result.output


def test_reset_db_requires_confirmation(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "reset-db"], input="n\n")
    assert result.exit_code != 0


def test_reset_db_with_yes(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "reset-db", "--yes"])
    assert result.exit_code == 0
    assert "reset complete" in result.output


def test_registers_list(app, cashier, other_cashier):
    runner = app.test_cli_runner()
    assert "No registers found." in runner.invoke(args=["registers", "list"]).output

    cash_service.open_register(cashier, Decimal("100"))
    cash_service.deposit(cashier, Decimal("20"))
    cash_service.open_register(other_cashier, Decimal("5"))
    cash_service.close_register(other_cashier, Decimal("5"))

    open_only = runner.invoke(args=["registers", "list", "--status", "OPEN"])
    assert open_only.exit_code == 0
    assert "user_cashier_1" in open_only.output
    assert "120.00" in open_only.output
    assert "user_cashier_2" not in open_only.output


def test_catalog_next_code(app, make_item):
    make_item(store="Mini Queen")
    runner = app.test_cli_runner()
    result = runner.invoke(args=["catalog", "next-code", "--store", "Mini Queen"])
    assert result.exit_code == 0
    assert "-0002" in result.output
    assert "Next purchase order number: PO-" in result.output


def test_catalog_next_code_rejects_unknown_store(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["catalog", "next-code", "--store", "Atlantis"])
    assert result.exit_code != 0
