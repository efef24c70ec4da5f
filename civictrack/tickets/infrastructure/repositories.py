"""
Ticket Infrastructure Repositories
===================================

SQLAlchemy implementations of the ticket store and the upvote ledger.
"""

from collections import defaultdict
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civictrack.core import AlreadyUpvotedException, ConcurrentUpdateException
from civictrack.infrastructure.database import storage_errors
from civictrack.shared.infrastructure.logging import get_logger
from civictrack.tickets.application import ITicketRepository, IUpvoteLedger, TicketFilters
from civictrack.tickets.domain import Ticket
from civictrack.tickets.infrastructure.models import (
    FeedbackModel, ResolutionModel, TicketModel, UpvoteModel
)

logger = get_logger(__name__)


class SQLAlchemyTicketRepository(ITicketRepository):
    """SQLAlchemy implementation of ticket repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID, always re-read from the database."""
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        async with storage_errors("load ticket"):
            result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return (await self._to_domain([model]))[0]

    async def create(self, ticket: Ticket) -> Ticket:
        async with storage_errors("create ticket"):
            self._session.add(TicketModel.from_domain(ticket))
            await self._session.flush()
            await self._append_history(ticket, persisted_resolutions=0, persisted_feedback=0)
        return ticket

    async def save(self, ticket: Ticket, expected_version: int) -> Ticket:
        """
        Write status fields behind a version check, then append new history rows.

        Upvotes are deliberately not written here so a concurrent vote is
        never overwritten by a status change.
        """
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket.id, TicketModel.version == expected_version)
            .values(
                status=ticket.status.value,
                assigned_to=ticket.assigned_to,
                feedback_status=ticket.feedback_status.value if ticket.feedback_status else None,
                updated_at=ticket.updated_at,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        async with storage_errors("save ticket"):
            result = await self._session.execute(stmt)
            if result.rowcount != 1:
                await self._session.rollback()
                logger.warning(
                    "Stale ticket write rejected",
                    extra={"ticket_id": ticket.id, "expected_version": expected_version}
                )
                raise ConcurrentUpdateException(ticket.id, expected_version)

            persisted_resolutions = await self._count(ResolutionModel, ticket.id)
            persisted_feedback = await self._count(FeedbackModel, ticket.id)
            await self._append_history(ticket, persisted_resolutions, persisted_feedback)

        ticket.version = expected_version + 1
        return ticket

    async def list(self, filters: TicketFilters) -> List[Ticket]:
        stmt = select(TicketModel)
        if filters.ward:
            stmt = stmt.where(TicketModel.ward == filters.ward)
        if filters.statuses:
            stmt = stmt.where(TicketModel.status.in_([s.value for s in filters.statuses]))
        if filters.author_id:
            stmt = stmt.where(TicketModel.author_id == filters.author_id)
        if filters.created_from:
            stmt = stmt.where(TicketModel.created_at >= filters.created_from)
        if filters.created_to:
            stmt = stmt.where(TicketModel.created_at <= filters.created_to)
        stmt = stmt.order_by(TicketModel.created_at.desc()).execution_options(populate_existing=True)

        async with storage_errors("list tickets"):
            result = await self._session.execute(stmt)
        return await self._to_domain(list(result.scalars().all()))

    async def commit(self) -> None:
        async with storage_errors("commit"):
            await self._session.commit()

    async def _to_domain(self, models: List[TicketModel]) -> List[Ticket]:
        """Attach resolution and feedback history, read in position order."""
        if not models:
            return []
        ids = [model.id for model in models]
        resolutions = defaultdict(list)
        feedback = defaultdict(list)

        async with storage_errors("load ticket history"):
            rows = await self._session.execute(
                select(ResolutionModel)
                .where(ResolutionModel.ticket_id.in_(ids))
                .order_by(ResolutionModel.ticket_id, ResolutionModel.position)
                .execution_options(populate_existing=True)
            )
            for row in rows.scalars():
                resolutions[row.ticket_id].append(row)

            rows = await self._session.execute(
                select(FeedbackModel)
                .where(FeedbackModel.ticket_id.in_(ids))
                .order_by(FeedbackModel.ticket_id, FeedbackModel.position)
                .execution_options(populate_existing=True)
            )
            for row in rows.scalars():
                feedback[row.ticket_id].append(row)

        return [
            model.to_domain(resolutions[model.id], feedback[model.id])
            for model in models
        ]

    async def _count(self, model, ticket_id: str) -> int:
        stmt = select(func.count()).select_from(model).where(model.ticket_id == ticket_id)
        return (await self._session.execute(stmt)).scalar_one()

    async def _append_history(
        self, ticket: Ticket, persisted_resolutions: int, persisted_feedback: int
    ) -> None:
        for position, resolution in enumerate(
            ticket.resolutions[persisted_resolutions:], start=persisted_resolutions
        ):
            self._session.add(ResolutionModel(
                ticket_id=ticket.id,
                position=position,
                notes=resolution.notes,
                proof_image_url=resolution.proof_image_url,
                resolved_by=resolution.resolved_by,
                resolved_at=resolution.resolved_at,
            ))
        for position, feedback in enumerate(
            ticket.feedback[persisted_feedback:], start=persisted_feedback
        ):
            self._session.add(FeedbackModel(
                ticket_id=ticket.id,
                position=position,
                citizen_id=feedback.citizen_id,
                approved=feedback.approved,
                comments=feedback.comments,
                submitted_at=feedback.submitted_at,
            ))
        await self._session.flush()


class SQLAlchemyUpvoteLedger(IUpvoteLedger):
    """
    Upvote ledger backed by the ticket_upvotes table.

    The vote row and the counter increment share one transaction, so the
    counter always equals the number of distinct voters.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def record(self, ticket_id: str, user_id: str, at: datetime) -> int:
        async with storage_errors("record upvote"):
            try:
                await self._session.execute(
                    insert(UpvoteModel).values(ticket_id=ticket_id, user_id=user_id, created_at=at)
                )
            except IntegrityError as e:
                await self._session.rollback()
                raise AlreadyUpvotedException(ticket_id, user_id) from e

            await self._session.execute(
                update(TicketModel)
                .where(TicketModel.id == ticket_id)
                .values(upvotes=TicketModel.upvotes + 1)
                .execution_options(synchronize_session=False)
            )
            result = await self._session.execute(
                select(TicketModel.upvotes).where(TicketModel.id == ticket_id)
            )
        return result.scalar_one()
