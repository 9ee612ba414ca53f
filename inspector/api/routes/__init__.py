"""API route modules."""

from . import inspect

__all__ = ["inspect"]
