"""Shared utilities."""

from morphic.utils.logging import setup_logging

__all__ = ["setup_logging"]
