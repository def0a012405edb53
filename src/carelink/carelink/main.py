from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import get_settings_module

from .container import Container, build_container, build_notifier
from .core.exceptions import DomainError
from .dashboard.controller import register as register_dashboard
from .database.bootstrap import apply_schema, list_tables
from .shift_requests.controller import register as register_shift_requests
from .shifts.controller import register as register_shifts
from .timesheets.controller import register as register_timesheets

logger = logging.getLogger(__name__)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(err: DomainError):
        if err.status_code >= 500:
            logger.error("%s: %s", type(err).__name__, err.message)
        body = {"success": False, "message": err.message, "errors": err.errors}
        return jsonify(body), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        body = {"success": False, "message": err.description or err.name, "errors": None}
        return jsonify(body), err.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        logger.exception("Unhandled error")
        return jsonify({"success": False, "message": "Internal Server Error", "errors": None}), 500


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(logging, str(getattr(settings, "LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            hourly_rate_cents=int(getattr(settings, "HOURLY_RATE_CENTS")),
            km_rate_cents=int(getattr(settings, "KM_RATE_CENTS")),
            notifier=build_notifier(getattr(settings, "NOTIFIER", "log"), getattr(settings, "SMTP_CONFIG", None)),
        )

    _register_error_handlers(app)
    register_shift_requests(app, container)
    register_shifts(app, container)
    register_timesheets(app, container)
    register_dashboard(app, container)

    return app
