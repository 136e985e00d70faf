"""Database helpers including SQLAlchemy and Flask-Migrate wiring."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from flask import Flask
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Initialize the extensions without an app bound so they can be configured
# inside the application factory.
db = SQLAlchemy()
migrate = Migrate()


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_uuid() -> str:
    return str(uuid.uuid4())


def init_app(app: Flask) -> None:
    """Bind SQLAlchemy and Flask-Migrate to the provided application."""
    db.init_app(app)
    migrate.init_app(app, db)
