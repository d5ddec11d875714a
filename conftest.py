# conftest.py

import os
import tempfile
import uuid

import pytest

# Set testing environment BEFORE importing app so TestingConfig is selected
os.environ["FLASK_ENV"] = "testing"

from app import create_app  # noqa: E402
from forum_migrator.models import db  # noqa: E402


@pytest.fixture(scope="function")
def app(tmp_path):
    """Create a Flask application bound to an isolated SQLite database"""
    db_fd, temp_db = tempfile.mkstemp(suffix=f"_{uuid.uuid4().hex[:8]}.db")

    try:
        flask_app = create_app(
            "testing",
            overrides={
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": f"sqlite:///{temp_db}",
                "SECRET_KEY": "test-secret-key-for-testing-only",
                "ENABLE_FILE_LOGGING": False,
                "ENABLE_CONSOLE_LOGGING": False,
                "LOG_LEVEL": "DEBUG",
                "IMPORTER_ENABLED": True,
                "IMPORTER_UPLOAD_DIR": str(tmp_path / "uploads"),
            },
        )

        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            yield flask_app
            db.session.remove()
            db.drop_all()
            db.engine.dispose()
    finally:
        try:
            os.close(db_fd)
        except OSError:
            pass
        try:
            if os.path.exists(temp_db):
                os.unlink(temp_db)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def session(app):
    return db.session
