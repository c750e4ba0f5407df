"""
Logging utilities for the markup tools.
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_ROTATE_BACKUPS = 7


def getLogLevelByStr(levelStr: str, default: Optional[int] = None) -> Optional[int]:
    """Get log level by string."""
    level = logging.getLevelName(str(levelStr).upper())
    if isinstance(level, int):
        return level
    logger.error(f"Invalid log level '{levelStr}'")
    return default


def _handlerLevel(config: Dict[str, Any], key: str, fallback: int) -> int:
    """Level of a single handler, falling back to the logger level."""
    if key not in config:
        return fallback
    level = getLogLevelByStr(config[key], fallback)
    return fallback if level is None else level


def _makeFileHandler(logFile: str, config: Dict[str, Any]) -> logging.Handler:
    logPath = Path(logFile)
    logPath.parent.mkdir(parents=True, exist_ok=True)

    if config.get("rotate", False):
        return TimedRotatingFileHandler(
            filename=logFile,
            when="midnight",
            interval=1,
            backupCount=int(config.get("rotate-backups", DEFAULT_ROTATE_BACKUPS)),
            encoding="utf-8",
        )
    return logging.FileHandler(logFile, encoding="utf-8")


def configureLogger(localLogger: logging.Logger, config: Dict[str, Any]) -> None:
    """
    Configure one logger from its config section.

    Recognized keys: ``level``, ``propagate``, ``format``, ``console``,
    ``console-level``, ``file``, ``file-level``, ``rotate`` and
    ``rotate-backups``. Existing handlers of the logger are replaced.

    Args:
        localLogger: Logger to configure
        config: Config section of the logger
    """
    if "propagate" in config:
        localLogger.propagate = bool(config["propagate"])

    if "level" in config:
        logLevel = getLogLevelByStr(config["level"])
        if logLevel is not None:
            localLogger.setLevel(logLevel)

    logLevel = localLogger.getEffectiveLevel()
    formatter = logging.Formatter(config.get("format", DEFAULT_LOG_FORMAT))

    # Clear existing handlers to avoid duplicates
    for handler in localLogger.handlers[:]:
        localLogger.removeHandler(handler)

    if config.get("console", False):
        consoleLogLevel = _handlerLevel(config, "console-level", logLevel)
        consoleHandler = logging.StreamHandler()
        consoleHandler.setLevel(consoleLogLevel)
        consoleHandler.setFormatter(formatter)
        localLogger.addHandler(consoleHandler)
        logger.info(f"Logging {localLogger.name} to console, logLevel: {consoleLogLevel}")

    if "file" in config:
        logFile = config["file"]
        try:
            fileHandler = _makeFileHandler(logFile, config)
        except OSError as e:
            logger.error(f"Failed to setup file logging for {localLogger.name}: {e}")
            return

        fileLogLevel = _handlerLevel(config, "file-level", logLevel)
        fileHandler.setLevel(fileLogLevel)
        fileHandler.setFormatter(formatter)
        localLogger.addHandler(fileHandler)
        logger.info(f"Logging {localLogger.name} to file: {logFile}, logLevel: {fileLogLevel}")


def initLogging(config: Dict[str, Any]) -> None:
    """
    Configure logging from the ``[logging]`` config section.

    The section itself configures the root logger (WARNING by default, so
    command output stays clean), ``[logging.logger.<name>]`` subsections
    configure single loggers.
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logging.WARNING)

    configureLogger(rootLogger, config)
    logLevel = rootLogger.getEffectiveLevel()

    logConfigs = config.get("logger", {})
    for loggerName, loggerConfig in logConfigs.items():
        logger.debug(f"Configuring logger '{loggerName}' with config {loggerConfig}")
        configureLogger(logging.getLogger(loggerName), loggerConfig)

    logger.info(f"Logging configured: root level={logging.getLevelName(logLevel)}")
