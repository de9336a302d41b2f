"""Utility modules for sqlpipe."""

from sqlpipe.utils.logger import setup_logging, get_logger

__all__ = ["setup_logging", "get_logger"]
