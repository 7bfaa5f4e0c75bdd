"""Logging configuration and utilities."""

import os
import sys
import logging
from datetime import datetime


def setup_logging(operation: str = "sync", debug: bool = False) -> logging.Logger:
    """Configure logging to both file and console.

    Args:
        operation: Name of the operation for log filename
        debug: Log at DEBUG level (git commands and their output)

    Returns:
        Configured logger instance
    """
    # Create logs directory if it doesn't exist
    logs_dir = os.path.join(os.getcwd(), 'logs')
    os.makedirs(logs_dir, exist_ok=True)

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    log_file = os.path.join(logs_dir, f'clonefleet_{operation}_{timestamp}.log')

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ],
        force=True  # Reset any existing configuration
    )

    logger = logging.getLogger('clonefleet')
    logger.info(f"Starting clonefleet {operation} operation")
    logger.info(f"Log file: {log_file}")

    return logger


def get_logger() -> logging.Logger:
    """Get the application logger.

    Returns:
        Logger instance
    """
    return logging.getLogger('clonefleet')
