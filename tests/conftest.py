"""
Test configuration.

Environment is pinned before any civictrack import: settings are read once
and cached at import time.
"""

import os
import tempfile
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="civictrack-tests-"))
API_DB_PATH = _TMP_DIR / "api.db"
USERS_FIXTURE = _TMP_DIR / "users.yaml"

USERS_FIXTURE.write_text(
    "users:\n"
    "  - {id: citizen-1, name: Asha, role: citizen, ward: Ward 1}\n"
    "  - {id: citizen-2, name: Vikram, role: citizen, ward: Ward 2}\n"
    "  - {id: authority-1, name: Ward 1 Office, role: authority, ward: Ward 1}\n"
    "  - {id: authority-2, name: Water Board, role: authority}\n"
)

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{API_DB_PATH}"
os.environ["USERS_FIXTURE_PATH"] = str(USERS_FIXTURE)
os.environ["SLA_POLICY_PATH"] = str(_TMP_DIR / "no_policy.yaml")
os.environ["SLA_SWEEP_INTERVAL"] = "0"
os.environ["SLACK_WEBHOOK_URL"] = ""

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession, async_sessionmaker, create_async_engine
)

from civictrack.infrastructure.database import Base  # noqa: E402
from civictrack.notifications.application import NotificationDispatcher  # noqa: E402
from civictrack.notifications.infrastructure import (  # noqa: E402
    SQLAlchemyNotificationRepository, sqlalchemy_notification_scope
)
from civictrack.sla.application import StaticPolicyProvider  # noqa: E402
from civictrack.sla.infrastructure import SLAAlertModel  # noqa: E402,F401
from civictrack.tickets.application import TicketService  # noqa: E402
from civictrack.tickets.infrastructure import (  # noqa: E402
    SQLAlchemyTicketRepository, SQLAlchemyUpvoteLedger
)
from civictrack.users import load_user_fixtures, seed_users  # noqa: E402
from civictrack.users.infrastructure import SQLAlchemyUserDirectory  # noqa: E402

from factories import NOW, FrozenClock  # noqa: E402


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
async def session_maker(tmp_path):
    """Fresh SQLite database with every table and the test users."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'civictrack.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with maker() as session:
        await seed_users(SQLAlchemyUserDirectory(session), load_user_fixtures(USERS_FIXTURE))
        await session.commit()

    yield maker
    await engine.dispose()


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_ticket_service(session_maker, clock):
    """Build a TicketService bound to one session."""

    def build(session, policy=None, repository_scope=None) -> TicketService:
        provider = StaticPolicyProvider(policy)
        dispatcher = NotificationDispatcher(
            user_directory=SQLAlchemyUserDirectory(session),
            repository_scope=repository_scope or sqlalchemy_notification_scope(session_maker),
            policy_provider=provider,
            clock=clock,
        )
        return TicketService(
            ticket_repository=SQLAlchemyTicketRepository(session),
            upvote_ledger=SQLAlchemyUpvoteLedger(session),
            user_directory=SQLAlchemyUserDirectory(session),
            dispatcher=dispatcher,
            policy_provider=provider,
            clock=clock,
        )

    return build


@pytest.fixture
def ticket_service(session, make_ticket_service):
    return make_ticket_service(session)


@pytest.fixture
def read_feed(session_maker):
    """Read a user's notifications through a fresh session."""

    async def read(user_id):
        async with session_maker() as session:
            return await SQLAlchemyNotificationRepository(session).list_for_recipient(user_id)

    return read


@pytest.fixture
def load_ticket(session_maker):
    """Reload a ticket through a fresh session (sees only committed state)."""

    async def load(ticket_id):
        async with session_maker() as session:
            return await SQLAlchemyTicketRepository(session).get_by_id(ticket_id)

    return load
