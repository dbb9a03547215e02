"""
Utilities and helper functions.

Provides:
- Logging configuration
"""

from smollm_lite.utils.log import configure_logging

__all__ = ["configure_logging"]
