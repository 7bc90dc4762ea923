"""
Structured logging for the cloud host sync service

Usage:
    from utils.logging import setup_logging, ContextLogger

    # Setup logging (call once at process start)
    setup_logging(level="INFO", log_file="/var/log/cloudsync/service.log")

    # Module loggers
    logger = logging.getLogger(__name__)

    # Task-scoped logger
    task_logger = ContextLogger(__name__, task_id=42, owner_id="0")
    task_logger.info("Cloud sync finished", new_add=3, attr_changed=1)
"""

from .config import configure_from_env, setup_logging, shutdown_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "configure_from_env",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
