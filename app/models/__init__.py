"""
Consolidated models package.

IMPORTANT: Explicit imports only - no wildcards to prevent circular imports.
"""

# Base utilities
from app.models.base import generate_id

# Xero integration models
from app.models.xero import XeroConnection

__all__ = [
    "generate_id",
    "XeroConnection",
]
