"""Database infrastructure for the resource and secret stores."""

from .connection import DatabaseConnectionManager

__all__ = ["DatabaseConnectionManager"]
