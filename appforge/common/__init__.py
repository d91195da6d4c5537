"""Common utilities shared across AppForge components."""

from .logger import setup_logger

__all__ = ["setup_logger"]
