"""Persistence for Xero connections."""
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utc_now
from app.models.xero import XeroConnection


class XeroConnectionRepository:
    """Reads and updates ``xero_connections`` rows through one async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_business(self, business_id: str) -> Optional[XeroConnection]:
        result = await self.db.execute(
            select(XeroConnection).where(XeroConnection.business_id == business_id)
        )
        return result.scalar_one_or_none()

    async def get_active_for_business(self, business_id: str) -> Optional[XeroConnection]:
        result = await self.db.execute(
            select(XeroConnection).where(
                XeroConnection.business_id == business_id,
                XeroConnection.is_active == True  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    async def mark_refreshed(
        self,
        connection: XeroConnection,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> None:
        connection.access_token = access_token
        connection.refresh_token = refresh_token
        connection.token_expires_at = expires_at
        connection.sync_error = None
        connection.updated_at = utc_now()
        await self.db.commit()

    async def deactivate(self, connection: XeroConnection, reason: str) -> None:
        connection.is_active = False
        connection.sync_error = reason
        connection.updated_at = utc_now()
        await self.db.commit()
