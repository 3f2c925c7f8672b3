"""
Process entry point: configure logging, serve the application with uvicorn
and exit with the supervisor's status.

Usage:
    todo-service
    python -m todo_service.server

SIGINT/SIGTERM stop the server gracefully: no new requests are accepted,
in-flight ones finish and the database pool is closed. uvicorn then ends the
process with the received signal, as an operator stop.
After a fatal pool error the server stops the same way without any signal
and the process exits with status 1, so that a process manager restarting
on failure brings it back up.
"""
from __future__ import annotations

import logging
import sys

import uvicorn

from .lifecycle import EXIT_FATAL, Supervisor
from .logging_config import configure_logging
from .main import create_app
from .settings import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    configure_logging(settings)

    supervisor = Supervisor()
    app = create_app(settings, supervisor=supervisor)
    config = uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None, access_log=False)
    server = uvicorn.Server(config)
    supervisor.attach(server)

    logger.info("Starting server on %s:%d", settings.host, settings.port)
    server.run()

    if not server.started:
        logger.error("Server failed to start on %s:%d", settings.host, settings.port)
        sys.exit(EXIT_FATAL)
    sys.exit(supervisor.exit_code)


if __name__ == "__main__":
    main()
