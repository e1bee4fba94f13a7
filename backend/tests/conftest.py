"""
Pytest fixtures for salondesk backend tests.

Provides the app with an in-memory database, per-test table cleanup,
seeded payment instruments and catalog, and helpers that walk an
appointment to a given status.
"""

from datetime import datetime

import pytest

from salondesk import create_app
from salondesk.extensions import db
from salondesk.models.appointments import (
    STATUS_AWAITING_PAYMENT,
    STATUS_CANCELED,
    STATUS_CHECKED_IN,
    STATUS_CONFIRMED,
    STATUS_CREATED,
    STATUS_DONE,
    STATUS_IN_SERVICE,
    STATUS_NO_SHOW,
)
from salondesk.services import catalog_service
from salondesk.services.workflow_service import WorkflowCoordinator


START = datetime(2026, 3, 2, 14, 0)

# Shortest action path from CREATED to each status
PATHS = {
    STATUS_CREATED: [],
    STATUS_CONFIRMED: ["confirm"],
    STATUS_CHECKED_IN: ["confirm", "check_in"],
    STATUS_IN_SERVICE: ["confirm", "check_in", "start_service"],
    STATUS_AWAITING_PAYMENT: ["confirm", "check_in", "start_service", "finish_service"],
    STATUS_DONE: ["confirm", "check_in", "start_service", "finish_service", "complete_without_settlement"],
    STATUS_NO_SHOW: ["confirm", "no_show"],
    STATUS_CANCELED: ["cancel"],
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ENTITY_LOCK_TIMEOUT': 2.0,
        'RETRY_BACKOFF_BASE': 0.01,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def instruments(db_session):
    """Cash (no fee), PIX, credit card 3% + 0.50 at D+30, and a disabled instrument."""
    cash = catalog_service.register_instrument("Cash", "CASH")
    pix = catalog_service.register_instrument("PIX", "PIX")
    credit = catalog_service.register_instrument(
        "Credit card", "CREDIT", percentage_fee="3.00", fixed_fee="0.50", settlement_days=30,
    )
    retired = catalog_service.register_instrument("Old voucher", "OTHER", is_active=False)
    return {
        "cash": cash.id,
        "pix": pix.id,
        "credit": credit.id,
        "retired": retired.id,
    }


@pytest.fixture(scope='function')
def catalog(db_session):
    catalog_service.add_catalog_entry("SERVICE", "SVC-CUT", "Haircut", "50.00", duration_minutes=45)
    catalog_service.add_catalog_entry("SERVICE", "SVC-COLOR", "Coloring", "120.00", duration_minutes=90)
    catalog_service.add_catalog_entry("PRODUCT", "PRD-SHAMPOO", "Shampoo 300ml", "35.90")
    catalog_service.add_catalog_entry("PACKAGE", "PKG-SPA", "Spa day", "200.00")


@pytest.fixture(scope='function')
def coordinator(db_session, catalog, instruments):
    return WorkflowCoordinator()


@pytest.fixture(scope='function')
def book(coordinator):
    def _book(services=("SVC-CUT",), **kwargs):
        result = coordinator.book("C-1", "P-7", START, list(services), **kwargs)
        assert result.ok, result.error
        return result.value.id
    return _book


@pytest.fixture(scope='function')
def appointment_in(book, coordinator):
    """Book an appointment and walk it to `status` through the lifecycle."""
    def _make(status, services=("SVC-CUT",), **book_kwargs):
        appointment_id = book(services, **book_kwargs)
        for action in PATHS[status]:
            result = coordinator.transition(appointment_id, action)
            assert result.ok, (action, result.error)
        return appointment_id
    return _make
