from decimal import Decimal

from salondesk.models import CatalogEntry, PaymentInstrument


def test_seed_instruments_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["instruments", "seed"])
    assert result.exit_code == 0
    assert "PASS Created Cash" in result.output
    assert "PASS 4 instrument(s) created" in result.output

    result = runner.invoke(args=["instruments", "seed"])
    assert "SKIP Cash already exists" in result.output
    assert "PASS 0 instrument(s) created" in result.output
    assert db_session.query(PaymentInstrument).count() == 4

    credit = db_session.query(PaymentInstrument).filter_by(name="Credit card").one()
    assert credit.percentage_fee == Decimal("3.49")
    assert credit.settlement_days == 30


def test_add_and_list_instruments(app, instruments):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "instruments", "add",
        "--name", "Visa Credit",
        "--type", "CREDIT",
        "--percentage-fee", "3.49",
        "--fixed-fee", "0.50",
    ])
    assert result.exit_code == 0
    assert "PASS Created instrument: Visa Credit" in result.output
    assert "3.49% + 0.50, D+30" in result.output

    result = runner.invoke(args=["instruments", "add", "--name", "Broken", "--type", "DEBIT", "--percentage-fee", "150"])
    assert "FAIL percentage_fee must be between 0 and 100" in result.output

    listed = runner.invoke(args=["instruments", "list"]).output
    assert "Visa Credit" in listed
    assert "Old voucher" not in listed
    assert "Old voucher" in runner.invoke(args=["instruments", "list", "--all"]).output


def test_catalog_commands(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "catalog", "add", "--kind", "SERVICE", "--ref", "SVC-BEARD",
        "--name", "Beard trim", "--price", "25.00", "--duration", "20",
    ])
    assert "PASS Created SERVICE SVC-BEARD: Beard trim (25.00)" in result.output

    result = runner.invoke(args=["catalog", "add", "--kind", "PRODUCT", "--ref", "PRD-X", "--name", "X", "--price=-1"])
    assert "FAIL unit_price must be >= 0" in result.output

    assert "SVC-BEARD" in runner.invoke(args=["catalog", "list", "--kind", "SERVICE"]).output
    assert "No catalog entries found." in runner.invoke(args=["catalog", "list", "--kind", "PACKAGE"]).output
    assert db_session.query(CatalogEntry).count() == 1


def test_reset_db(app, instruments):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "reset-db", "--yes"])

    assert result.exit_code == 0
    assert "PASS Database reset complete" in result.output
    assert runner.invoke(args=["instruments", "list"]).output.strip() == "No payment instruments found."
