# forum_migrator/models/base.py

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class BaseModel(db.Model):
    """Abstract base for every table owned by the application."""

    __abstract__ = True

    def __repr__(self):
        identity = getattr(self, "id", None)
        return f"<{type(self).__name__} {identity}>"
