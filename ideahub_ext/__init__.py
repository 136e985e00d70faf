"""Application factory and shared extension wiring."""
from __future__ import annotations

import os
from importlib import import_module
from typing import Dict, Mapping, Type

from flask import Flask
from sqlalchemy.engine import make_url

from config import BaseConfig, DevConfig, ProdConfig, TestConfig, load_auth_settings
from ideahub_ext import db as db_ext
from ideahub_ext import errors as errors_ext
from ideahub_ext import logging as logging_ext
from ideahub_ext import middleware as middleware_ext
from ideahub_ext import sms as sms_ext

CONFIG_MAP: Dict[str, Type[BaseConfig]] = {
    "development": DevConfig,
    "dev": DevConfig,
    "production": ProdConfig,
    "prod": ProdConfig,
    "testing": TestConfig,
    "test": TestConfig,
}


def create_app(
    config_object: str | Type[BaseConfig] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    create_db: bool | None = None,
) -> Flask:
    """Application factory used by both CLI and WSGI entrypoints.

    ``environ`` replaces ``os.environ`` for the security settings. Invalid
    settings raise :class:`config.ConfigError` before anything is bound.
    """
    app = Flask(__name__, template_folder=None, static_folder=None)

    _load_config(app, config_object)
    app.config.update(load_auth_settings(environ).as_flask_config())

    logging_ext.configure_logging(app)
    errors_ext.init_app(app)
    db_ext.init_app(app)
    sms_ext.init_app(app)

    from ideahub_ext import auth as auth_ext

    auth_ext.init_app(app)
    middleware_ext.init_app(app)
    _register_cli(app)

    if create_db is None:
        create_db = app.config.get("CREATE_DB_ON_STARTUP", False)
    if create_db:
        with app.app_context():
            db_ext.db.create_all()

    _log_startup(app)
    return app


def _load_config(app: Flask, config_object: str | Type[BaseConfig] | None) -> None:
    if config_object is None:
        env_name = os.getenv("FLASK_ENV", "development").lower()
        config_cls = CONFIG_MAP.get(env_name, DevConfig)
    elif isinstance(config_object, str):
        key = config_object.lower()
        if key in CONFIG_MAP:
            config_cls = CONFIG_MAP[key]
        else:
            module_path, _, attr = config_object.rpartition(".")
            if module_path:
                module = import_module(module_path)
                config_cls = getattr(module, attr)
            else:
                raise KeyError(f"Unknown config identifier: {config_object}")
    else:
        config_cls = config_object

    app.config.from_object(config_cls)


def _register_cli(app: Flask) -> None:
    from ideahub_cli.manage import manage_cli

    app.cli.add_command(manage_cli, "manage")


def _log_startup(app: Flask) -> None:
    # Only the host is logged; the URL may embed credentials.
    database_host = make_url(app.config["SQLALCHEMY_DATABASE_URI"]).host or "local"
    with app.app_context():
        logging_ext.log_info(
            "Auth core configured",
            component="startup",
            version=app.config["VERSION"],
            database_host=database_host,
            sms_provider=app.config["SMS_PROVIDER"],
            session_expiry_days=app.config["SESSION_EXPIRY_DAYS"],
            otp_expiry_minutes=app.config["OTP_EXPIRY_MINUTES"],
            rate_limit_attempts=app.config["RATE_LIMIT_ATTEMPTS"],
            rate_limit_window_minutes=app.config["RATE_LIMIT_WINDOW_MINUTES"],
        )
