"""Logging configuration."""

from .logger import enable_file_logging, get_logger, log_performance, logger

__all__ = ["enable_file_logging", "get_logger", "log_performance", "logger"]
