"""
Entrypoint for running the API in development.
In production run the app under a WSGI server (gunicorn/uwsgi) instead.
"""
import logging
import os
import signal
import sys

from models.db_storage import DBStorage

from . import create_app
from .config import get_config


def _exit_on_sigterm(signum, frame):
    # Turn SIGTERM into SystemExit so the storage context below is unwound
    sys.exit(0)


def main():
    config = get_config(None)
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    signal.signal(signal.SIGTERM, _exit_on_sigterm)

    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_RUN_PORT", "8000"))

    with DBStorage(config.DATABASE_URL, timeout=config.DB_TIMEOUT_SECONDS, echo=config.SQL_ECHO) as storage:
        app = create_app(storage=storage)
        logging.getLogger(__name__).info("Starting %s server on %s:%d", config.APP_ENV, host, port)
        # threaded: slow bcrypt checks never hold up other requests
        app.run(host=host, port=port, debug=config.DEBUG, use_reloader=False, threaded=True)


if __name__ == "__main__":
    main()
