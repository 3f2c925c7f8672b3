from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1


# PUBLIC_INTERFACE
class Supervisor:
    """
    Fail-fast policy for errors that leave the process in an untrustworthy state.

    The first call to ``fail`` logs the error, records a non-zero exit status
    and asks the server to stop accepting requests. The process manager is
    expected to restart the service. Later calls are ignored.
    """

    def __init__(self, stop: Optional[Callable[[], None]] = None) -> None:
        self._stop = stop
        self._lock = Lock()
        self.exit_code = EXIT_OK

    @property
    def failed(self) -> bool:
        return self.exit_code != EXIT_OK

    def attach(self, server: Any) -> None:
        """
        Stop ``server`` (a ``uvicorn.Server``) on failure.

        The server drains in-flight requests and runs the lifespan shutdown,
        which closes the pool; its ``run`` then returns to the caller.
        """

        def _stop() -> None:
            server.should_exit = True

        self._stop = _stop

    def fail(self, exc: BaseException) -> None:
        with self._lock:
            if self.failed:
                return
            self.exit_code = EXIT_FATAL
        logger.critical("Unexpected error on idle database connection, shutting down", exc_info=exc)
        if self._stop is not None:
            self._stop()
