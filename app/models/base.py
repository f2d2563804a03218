"""Shared base utilities for data models and engine entities."""
import secrets
from datetime import datetime, timezone


def generate_id(prefix: str) -> str:
    """Generate a unique ID with a prefix, e.g. ``hire_3f9a1c0b2d4e``."""
    return f"{prefix}_{secrets.token_hex(6)}"


def utc_now() -> datetime:
    """Timezone-aware current time; token expiry columns are stored in UTC."""
    return datetime.now(timezone.utc)
