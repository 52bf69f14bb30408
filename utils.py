# utils.py
"""
Utility functions for the satellite simulation.

This module provides helper functions, such as logging setup, configuration
loading and reading the device program from disk, that are used across
different parts of the application but do not belong to a specific domain
like physics or rendering.
"""
import logging
import logging.handlers
import json
import os
from typing import Dict, Any

from constants import MAX_KERNEL_SOURCE_BYTES

PROJECT_DIR = os.path.dirname(os.path.abspath(__file__))

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: A dictionary containing a "logging" key with "level",
#       "format", and "log_file" sub-keys. A relative log_file is
#       resolved against the project directory, like every other path.
#   - Outputs: None
#   - Side Effects: Configures the root Python logger. Creates a log
#     directory if it doesn't exist. Sets up a console handler and a
#     rotating file handler.
#   - Invariants: After this function runs, the logging system is
#     initialized and ready for use throughout the application.
#
# load_kernel_source(path: str, max_bytes: int) -> str:
#   - Inputs:
#     - path: Location of the OpenCL C source. Relative paths are resolved
#       against the project directory.
#     - max_bytes: Size limit; larger files are rejected instead of being
#       silently truncated.
#   - Outputs: The complete source text decoded as UTF-8.

def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the logging system from a configuration dictionary.

    Sets up logging to both the console and a rotating file.
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', '%(asctime)s - %(levelname)s - %(message)s')
    log_file_path = resolve_path(log_config.get('log_file', 'logs/satellites.log'))

    # Ensure the log directory exists
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Rotates when the log reaches 1MB, keeps 5 backup logs.
    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path, maxBytes=1024*1024, backupCount=5
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level set to {log_level}.")
    logging.debug(f"Log file path: {log_file_path}")

def load_config(path: str) -> Dict[str, Any]:
    """Loads a JSON configuration file."""
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
        logging.info("Configuration loaded successfully.")
        return config
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise

def resolve_path(path: str) -> str:
    """Returns `path` unchanged if absolute, otherwise relative to the project directory."""
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_DIR, path)

def load_kernel_source(path: str, max_bytes: int = MAX_KERNEL_SOURCE_BYTES) -> str:
    """
    Reads the device program source as UTF-8 text.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is larger than `max_bytes`.
    """
    full_path = resolve_path(path)
    logging.info(f"Loading kernel source from {full_path}...")
    try:
        size = os.path.getsize(full_path)
    except FileNotFoundError:
        logging.error(f"Kernel source not found at {full_path}.")
        raise

    if size > max_bytes:
        msg = f"Kernel source {full_path} is {size} bytes, limit is {max_bytes} bytes."
        logging.error(msg)
        raise ValueError(msg)

    with open(full_path, 'r', encoding='utf-8') as f:
        source = f.read()
    logging.debug(f"Kernel source loaded ({size} bytes).")
    return source
