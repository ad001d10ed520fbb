"""
Shared pytest fixtures: an app bound to an in-memory SQLite database.
"""
import pytest

from rebanho import create_app, db


@pytest.fixture
def app():
    """Fresh application and empty database for each test."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client for making requests."""
    return app.test_client()
