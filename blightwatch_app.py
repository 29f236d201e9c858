"""Entry point for the BlightWatch backend.

WSGI servers can use the factory directly, e.g.
``gunicorn "blightwatch_app:build_app()"``; ``main()`` runs Flask's
development server for local use.
"""
from __future__ import annotations

import logging
import os

from flask import Flask

from app import create_app
from app.config import _env_bool


def build_app() -> Flask:
    return create_app()


def main() -> int:
    host = os.getenv("BLIGHTWATCH_HOST", "0.0.0.0")
    port = int(os.getenv("BLIGHTWATCH_PORT", "8000"))
    debug = _env_bool("BLIGHTWATCH_DEBUG", False)

    try:
        app = build_app()
    except Exception as exc:
        logging.basicConfig(level=logging.INFO)
        logging.exception("ERROR: Failed to build application: %s", exc)
        return 1

    logging.info("Starting server on %s:%s", host, port)
    try:
        # the scheduler thread must not be started twice by the reloader
        app.run(host=host, port=port, debug=debug, use_reloader=False)
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except Exception as exc:  # pragma: no cover - top-level runtime errors
        logging.exception("ERROR: Failed to start server: %s", exc)
        return 1
    finally:
        app.extensions["blightwatch_shutdown"]("server exit")


if __name__ == "__main__":
    raise SystemExit(main())
