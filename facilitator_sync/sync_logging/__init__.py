"""
Structured logging for facilitator_sync.

JSON logs with timestamp, level, logger and event_type.
Use get_logger() in all pipeline modules.
"""

from facilitator_sync.sync_logging.logger import LOG_FORMATS, bind_window, configure_structlog, get_logger

__all__ = ["LOG_FORMATS", "bind_window", "configure_structlog", "get_logger"]
