from __future__ import annotations

import atexit
import logging
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.diagnoses import diagnoses_api
from app.blueprints.api.environment import environment_api
from app.blueprints.api.notifications import notifications_api
from app.blueprints.api.system import system_api
from app.config import load_config, setup_logging


def create_app(
    config_overrides: dict[str, Any] | None = None,
    *,
    start_scheduler: bool | None = None,
    classifier=None,
) -> Flask:
    """Build the Flask app and its ServiceContainer.

    ``config_overrides`` keys are AppConfig field names (case-insensitive).
    """
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            attr = key if hasattr(config, key) else key.lower()
            if not hasattr(config, attr):
                raise KeyError(f"Unknown configuration key: {key}")
            setattr(config, attr, value)

    setup_logging(debug=config.DEBUG, log_file=config.log_file)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config, start_scheduler=start_scheduler, classifier=classifier)
    flask_app.config["CONTAINER"] = container
    flask_app.teardown_appcontext(container.database.close_db)

    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    atexit.register(_graceful_shutdown, "atexit")
    flask_app.extensions["blightwatch_shutdown"] = _graceful_shutdown

    # Unhandled exceptions on /api/ routes become JSON envelopes; domain
    # exceptions carry their own ``http_status``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        if not request.path.startswith("/api/"):
            raise exc
        from app.domain.exceptions import BlightWatchError
        from app.utils.http import domain_error_response, error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, BlightWatchError):
            return domain_error_response(exc)

        return safe_error(exc, 500, context="unhandled")

    flask_app.register_blueprint(environment_api, url_prefix="/api/environment")
    flask_app.register_blueprint(diagnoses_api, url_prefix="/api/diagnoses")
    flask_app.register_blueprint(notifications_api, url_prefix="/api/notifications")
    flask_app.register_blueprint(system_api, url_prefix="/api/health")

    for bp_name in flask_app.blueprints:
        logging.debug("Registered blueprint: %s", bp_name)

    logging.getLogger(__name__).info("BlightWatch application initialized successfully.")
    return flask_app


__all__ = ["create_app"]
