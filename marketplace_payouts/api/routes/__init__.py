"""
API route modules.
"""

from . import vendors, admin

__all__ = ["vendors", "admin"]
