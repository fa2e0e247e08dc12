"""
Pytest fixtures for registrar tests.

Provides the test application, a per-test clean database, tenant fixtures and
the seeded global settings catalog.
"""

from datetime import date

import pytest

from registrar import create_app
from registrar.extensions import db
from registrar.models import Branch, School
from registrar.services import calendar_service, settings_service, settings_store


REASON = "End of academic period confirmed by the board"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_BACKOFF': 0.0,
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
        settings_store.clear_cache()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def defaults(db_session):
    """Seed the global default settings catalog."""
    settings_service.seed_defaults()
    return db_session


@pytest.fixture(scope='function')
def school_a(db_session):
    """Create School A (first tenant)."""
    school = School(name="Greenfield High School", code="GHS", is_active=True)
    db_session.add(school)
    db_session.commit()
    return school


@pytest.fixture(scope='function')
def school_b(db_session):
    """Create School B (second tenant)."""
    school = School(name="Riverside Academy", code="RSA", is_active=True)
    db_session.add(school)
    db_session.commit()
    return school


@pytest.fixture(scope='function')
def branch_a(db_session, school_a):
    """Create a branch under School A."""
    branch = Branch(school_id=school_a.id, name="North Campus", code="N")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def session_2025(defaults, school_a):
    """2025/2026 session for School A with its three generated terms."""
    return calendar_service.create_session(
        school_a,
        name="2025/2026",
        start_date=date(2025, 9, 1),
        end_date=date(2026, 7, 31),
    )
