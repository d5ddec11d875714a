# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value, default, *, minimum=1):
    """
    Parse an integer setting, falling back to ``default`` for blank, malformed
    or out-of-range values.
    """
    if value is None or str(value).strip() == "":
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    if number < minimum:
        return default
    return number


class Config:
    # SECRET_KEY must be set via environment variable in production.
    # Generate with: python -c "import secrets; print(secrets.token_hex(32))"
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY and not _is_testing:
        import warnings

        warnings.warn(
            "SECRET_KEY not set. Using default for development only. "
            "Set SECRET_KEY environment variable before running against a real forum.",
            UserWarning,
        )
        SECRET_KEY = "dev-secret-key-change-in-production"

    if not SECRET_KEY:
        SECRET_KEY = "test-secret-key-placeholder"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Importer configuration
    IMPORTER_ENABLED = _coerce_bool(os.environ.get("IMPORTER_ENABLED"), default=True)
    IMPORTER_SOURCE_CHARSET = (os.environ.get("DB_CHARSET") or "utf8").strip().lower()
    IMPORTER_BBCODE_TO_MD = _coerce_bool(os.environ.get("IMPORTER_BBCODE_TO_MD"), default=False)
    IMPORTER_BBCODE_CONVERTER = os.environ.get("IMPORTER_BBCODE_CONVERTER")

    if IMPORTER_BBCODE_TO_MD and not IMPORTER_BBCODE_CONVERTER:
        raise ValueError(
            "IMPORTER_BBCODE_TO_MD is true but IMPORTER_BBCODE_CONVERTER is empty. "
            "Provide a converter as 'package.module:attribute'."
        )

    IMPORTER_BATCH_SIZE = _parse_int(os.environ.get("IMPORTER_BATCH_SIZE"), 1000)
    IMPORTER_PROGRESS_EVERY = _parse_int(os.environ.get("IMPORTER_PROGRESS_EVERY"), 100)
    IMPORTER_SITE_DEFAULTS_PATH = os.environ.get(
        "IMPORTER_SITE_DEFAULTS_PATH",
        os.path.join(os.path.dirname(__file__), "site_defaults.yaml"),
    )
    IMPORTER_UPLOAD_DIR = os.environ.get("IMPORTER_UPLOAD_DIR")
    IMPORTER_AVATAR_TEMPLATE = os.environ.get(
        "IMPORTER_AVATAR_TEMPLATE",
        "/user_avatar/{username_lower}/{size}/1.png",
    )
    IMPORTER_LOCALE = os.environ.get("LOCALE", "en")


class DevelopmentConfig(Config):
    DEBUG = True
    # Keep the development database inside the instance folder
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URIs need forward slashes even on Windows
    db_path = os.path.join(instance_path, "forum_migrator_dev.db")
    db_path_normalized = db_path.replace("\\", "/")
    db_uri = f"sqlite:///{db_path_normalized}"

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", db_uri)
    SQLALCHEMY_ECHO = False
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    IMPORTER_ENABLED = True
    IMPORTER_BBCODE_TO_MD = False
    IMPORTER_BBCODE_CONVERTER = None
    IMPORTER_SOURCE_CHARSET = "utf8"


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
