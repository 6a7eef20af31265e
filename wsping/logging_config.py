"""Logging configuration for the wsping server."""

import logging
import os
import sys

from PySide6.QtCore import QtMsgType, qInstallMessageHandler

QT_LOGGER_NAME = "wsping.qt"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Qt message type -> logging level
QT_MESSAGE_LEVELS = {
    QtMsgType.QtDebugMsg: logging.DEBUG,
    QtMsgType.QtInfoMsg: logging.INFO,
    QtMsgType.QtWarningMsg: logging.WARNING,
    QtMsgType.QtCriticalMsg: logging.ERROR,
    QtMsgType.QtFatalMsg: logging.CRITICAL,
}


def qt_message_handler(msg_type, context, message: str) -> None:
    """Forward a qDebug/qWarning style message from Qt to the wsping.qt logger.

    QtWebSockets and QtNetwork report handshake and socket trouble this way;
    without the handler those lines bypass the log format and level.
    """
    level = QT_MESSAGE_LEVELS.get(msg_type, logging.WARNING)
    logging.getLogger(QT_LOGGER_NAME).log(level, "%s", message)


def configure_logging() -> int:
    """Configure application-wide logging and return the chosen level.

    Respects WSPING_LOG_LEVEL environment variable (default: INFO, case
    insensitive, unknown values fall back to INFO). Logs to stderr with
    timestamp, logger name, level and message.

    Qt's own diagnostics are routed into the same handler. urllib3, which
    requests uses for every HTTP probe, stays at WARNING unless the level
    is DEBUG, so one probe per tick does not add connection-pool noise.

    Examples:
        # One ping-style line per probe result
        $ python -m wsping

        # Session state changes, skipped ticks, pongs and connection reuse
        $ WSPING_LOG_LEVEL=DEBUG python -m wsping
    """
    level_name = os.environ.get("WSPING_LOG_LEVEL", "INFO").strip().upper()
    log_level = LOG_LEVELS.get(level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("urllib3").setLevel(
        logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    )
    qInstallMessageHandler(qt_message_handler)

    logger = logging.getLogger(__name__)
    logger.info("Logging configured: level=%s", logging.getLevelName(log_level))
    if level_name not in LOG_LEVELS:
        logger.warning("Unknown WSPING_LOG_LEVEL %r, using INFO", level_name)
    return log_level
