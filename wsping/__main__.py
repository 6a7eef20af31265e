"""Entry point for the wsping server."""

import logging
import signal
import sys

from PySide6.QtCore import QCoreApplication, QTimer

from wsping.config import load_server_config
from wsping.logging_config import configure_logging
from wsping.prober import make_prober_factory
from wsping.server import ProbeServer

# Configure logging early
configure_logging()
logger = logging.getLogger(__name__)

# Python signal handlers only run when control returns to the interpreter
SIGNAL_POLL_MS = 200


def main() -> int:
    """Main entry point for the wsping server."""
    app = QCoreApplication(sys.argv)

    try:
        config = load_server_config()
    except ValueError as e:
        logger.error("Server configuration invalid: %s", e)
        return 2

    prober_factory = make_prober_factory(config.prober)
    if config.prober == "fake":
        logger.info("Using simulated probes (WSPING_PROBER=fake)")

    server = ProbeServer(config, prober_factory)
    try:
        server.listen()
    except OSError as e:
        logger.error("%s", e)
        return 1

    def handle_signal(signum, _frame):
        logger.info("Signal %d received - shutting down", signum)
        app.quit()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    poll = QTimer()
    poll.timeout.connect(lambda: None)
    poll.start(SIGNAL_POLL_MS)

    exit_code = app.exec()

    server.close()
    logger.info("Server shutdown complete")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
