"""
Utility modules for the marketplace server.
"""

from .config import Config
from .log import setup_logging

__all__ = ["Config", "setup_logging"]
