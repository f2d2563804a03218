"""Forecast module - live forecast state, derivations and multi-year projection."""
from app.forecast import calculations, context, panel, projection, store, types

__all__ = ["calculations", "context", "panel", "projection", "store", "types"]
