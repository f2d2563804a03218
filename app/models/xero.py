"""Database models for Xero integration."""
from sqlalchemy import Column, String, DateTime, Text, Boolean
from sqlalchemy.sql import func

from app.database import Base
from app.models.base import generate_id


class XeroConnection(Base):
    """Xero connection model - stores OAuth tokens and tenant info for a business."""

    __tablename__ = "xero_connections"

    id = Column(String, primary_key=True, default=lambda: generate_id("xero"))
    business_id = Column(String, nullable=False, unique=True, index=True)

    # Xero tenant info
    tenant_id = Column(String, nullable=True)  # Xero organization ID
    tenant_name = Column(String, nullable=True)  # Organization name

    # OAuth tokens
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Connection status
    is_active = Column(Boolean, nullable=False, default=False)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    sync_error = Column(Text, nullable=True)

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
