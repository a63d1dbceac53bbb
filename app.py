import os
import time

from flask import Flask, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from api.blueprint import create_api_blueprint
from api.schemas.api_responses import fail, ok
from api.session import SESSION_FACTORY_KEY, get_session_factory
from config import SyncConfig
from db import make_engine, make_session_factory
from logging_utils import configure_app_logging, get_logger


def create_app(
    config: SyncConfig | None = None, *, session_factory: sessionmaker | None = None
) -> Flask:
    """Build the read-only JSON API over the primary store.

    `session_factory` wins over `config.primary_database_url`; tests pass one
    bound to a temporary database.
    """

    config = config or SyncConfig.from_env()

    app = Flask(__name__)

    # Load config from file.
    app.config.from_pyfile("settings.py")

    configure_app_logging(config.log_level)
    logger = get_logger(__name__)

    if session_factory is None:
        session_factory = make_session_factory(make_engine(config.primary_database_url))
    app.extensions[SESSION_FACTORY_KEY] = session_factory

    # --- slow request logging (opt-in by threshold; default 250ms) ---
    # Set SLOW_REQUEST_MS=0 to disable.
    slow_ms = int(os.getenv("SLOW_REQUEST_MS", "") or app.config.get("SLOW_REQUEST_MS", 250))

    @app.before_request
    def _start_timer():
        if slow_ms > 0:
            request.environ["_req_start_ns"] = time.perf_counter_ns()

    @app.after_request
    def _log_slow_requests(resp):
        if slow_ms <= 0:
            return resp

        start_ns = request.environ.get("_req_start_ns")
        if not start_ns:
            return resp

        elapsed_ms = (time.perf_counter_ns() - int(start_ns)) / 1_000_000.0
        if elapsed_ms >= slow_ms:
            # Keep it compact and stable for grepping.
            logger.warning(
                "SLOW_REQUEST ms=%.1f status=%s method=%s path=%s query=%s",
                elapsed_ms,
                getattr(resp, "status_code", "?"),
                request.method,
                request.path,
                request.query_string.decode("utf-8", errors="replace"),
            )
        return resp

    app.register_blueprint(create_api_blueprint())

    @app.route("/healthz", methods=["GET"])
    def healthz():
        try:
            with get_session_factory()() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Health check failed | err=%s", e)
            return jsonify(fail("database unreachable", code="db_unavailable")), 503
        return jsonify(ok({"status": "ok"}))

    # Error handlers
    @app.errorhandler(404)
    def not_found(_err):
        return jsonify(fail("not found", code="not_found")), 404

    @app.errorhandler(500)
    def server_error(_err):
        logger.exception("Unhandled server error")
        return jsonify(fail("internal server error", code="internal_error")), 500

    return app


# NOTE: Do not instantiate the Flask app at import time.
# Tests pass their own session factory to create_app().
app: Flask | None = None


if __name__ == "__main__":
    app = create_app()
    get_logger(__name__).info("Starting Flask app")
    app.run(debug=True, use_reloader=False)
