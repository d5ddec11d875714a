# app.py

import logging
import os

from dotenv import load_dotenv
from flask import Flask

# Load environment variables from .env file first
load_dotenv()

# Module imports after load_dotenv() - E402 is intentional
from config import DevelopmentConfig, ProductionConfig, TestingConfig  # noqa: E402
from config.monitoring import (  # noqa: E402
    DevelopmentMonitoringConfig,
    ProductionMonitoringConfig,
    TestingMonitoringConfig,
)
from config.validation import validate_and_exit  # noqa: E402
from forum_migrator.importer import init_importer  # noqa: E402
from forum_migrator.models import db  # noqa: E402
from forum_migrator.utils.logging_config import setup_logging  # noqa: E402

logger = logging.getLogger(__name__)

_CONFIGS = {
    "production": (ProductionConfig, ProductionMonitoringConfig),
    "testing": (TestingConfig, TestingMonitoringConfig),
    "development": (DevelopmentConfig, DevelopmentMonitoringConfig),
}


def create_app(flask_env=None, overrides=None):
    """
    Build the Flask application that hosts the importer CLI.

    ``flask --app app importer run ...`` discovers this factory.
    """
    flask_env = flask_env or os.environ.get("FLASK_ENV", "development")
    if flask_env == "production":
        validate_and_exit(flask_env)

    app = Flask(__name__)
    config, monitoring_config = _CONFIGS.get(flask_env, _CONFIGS["development"])
    app.config.from_object(config)
    app.config.from_object(monitoring_config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    setup_logging(app)
    init_importer(app)
    return app


if __name__ == "__main__":
    # Running the module directly prepares the target schema
    application = create_app()
    with application.app_context():
        db.create_all()
    logger.info("Target schema created at %s", application.config["SQLALCHEMY_DATABASE_URI"])
