"""
SLA Infrastructure Repositories
=================================

SQLAlchemy implementation of the escalation record store.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from civictrack.config import SLAStatus
from civictrack.infrastructure.database import storage_errors
from civictrack.sla.application import ISLAAlertRepository
from civictrack.sla.infrastructure.models import SLAAlertModel


class SQLAlchemySLAAlertRepository(ISLAAlertRepository):
    """SQLAlchemy implementation of the SLA alert repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def exists(self, ticket_id: str, sla_status: SLAStatus) -> bool:
        stmt = select(SLAAlertModel.id).where(
            SLAAlertModel.ticket_id == ticket_id,
            SLAAlertModel.sla_status == SLAStatus(sla_status).value,
        )
        async with storage_errors("check sla alert"):
            result = await self._session.execute(stmt)
        return result.first() is not None

    async def create(
        self,
        ticket_id: str,
        sla_status: SLAStatus,
        deadline: datetime,
        triggered_at: datetime
    ) -> str:
        alert_id = str(uuid4())
        async with storage_errors("create sla alert"):
            self._session.add(SLAAlertModel(
                id=alert_id,
                ticket_id=ticket_id,
                sla_status=SLAStatus(sla_status).value,
                deadline=deadline,
                triggered_at=triggered_at,
            ))
            await self._session.flush()
        return alert_id

    async def mark_sent(self, alert_id: str, sent_at: datetime) -> None:
        stmt = (
            update(SLAAlertModel)
            .where(SLAAlertModel.id == alert_id)
            .values(notification_sent=True, notification_sent_at=sent_at)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors("mark sla alert sent"):
            await self._session.execute(stmt)
