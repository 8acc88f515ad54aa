"""Structured logging for grid evaluator."""

from grid_evaluator.logging.logger import get_logger, setup_logging, log_context

__all__ = ["get_logger", "setup_logging", "log_context"]
