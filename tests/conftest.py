# tests/conftest.py
"""
Pytest configuration and shared fixtures for the progression engine tests.

Every test gets a fresh in-memory SQLite database with the ledger listeners
registered, so Partner.currentXp is kept equal to SUM(ledger) exactly as in
production.

Run:
    pytest tests -v
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Config
from models import Base, ActivityLog, Partner
from models.listeners import register_all_listeners
from progression_system.config.ranks import Rank, RankLadder, reset_rank_ladder_cache
from progression_system.events.event_bus import eventBus
from progression_system.services.progression_service import ProgressionService
from progression_system.utils.time_machine import timeMachine

# =============================================================================
# INITIALIZE CONFIG
# =============================================================================

Config.initialize_from_env()

ADMIN_ID = 1001

# Twelve lesson ids required for Verified in the scenario ladder
VERIFIED_TASKS = [f"lesson-{i:02d}" for i in range(1, 13)]

FROZEN_NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)  # Wednesday


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def setup_listeners():
    """Register listeners once at test session start."""
    register_all_listeners()


@pytest.fixture
def session(engine):
    """Create database session for each test."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def clean_globals():
    """Reset process-wide singletons between tests."""
    eventBus.clear()
    reset_rank_ladder_cache()
    Config.set(Config.ADMIN_USER_IDS, [ADMIN_ID])
    yield
    eventBus.clear()
    reset_rank_ladder_cache()
    timeMachine.resetToRealTime()


@pytest.fixture
def frozen_time():
    timeMachine.setTime(FROZEN_NOW)
    return FROZEN_NOW


# =============================================================================
# LADDER FIXTURES
# =============================================================================

@pytest.fixture
def ladder():
    """
    Small ladder matching the documented scenarios:
    Recruit 0, Starter 500, Apprentice 1000 (25%), Agent 2000 (30%),
    Verified 7000 (40%, 12 tasks), Partner Pro 10000 (45%, Pro tier).
    """
    return RankLadder([
        Rank("Recruit", 0, Decimal("20")),
        Rank("Starter", 500, Decimal("22")),
        Rank("Apprentice", 1000, Decimal("25")),
        Rank("Agent", 2000, Decimal("30"), requiredTaskIds=frozenset(["agent-intro"])),
        Rank("Verified", 7000, Decimal("40"), requiredTaskIds=frozenset(VERIFIED_TASKS)),
        Rank("Partner Pro", 10000, Decimal("45"), requiredTaskIds=frozenset(VERIFIED_TASKS), isProTier=True),
    ])


@pytest.fixture
def progression(session, ladder):
    return ProgressionService(session, ladder)


# =============================================================================
# HELPER FIXTURES
# =============================================================================

@pytest.fixture
def make_partner(progression):
    """Factory: create a partner and optionally grant starting XP."""

    async def _make(displayName="Test Partner", xp=0, telegramID=None):
        partner = await progression.createPartner(displayName, telegramID)
        if xp:
            await progression.grantXp(partner.partnerID, xp, description="starting XP")
        return partner.partnerID

    return _make


@pytest.fixture
def ledger_sum(session):
    """SUM(xpValue) straight from the table."""

    def _sum(partnerId: int) -> int:
        return int(session.query(
            func.coalesce(func.sum(ActivityLog.xpValue), 0)
        ).filter(ActivityLog.partnerID == partnerId).scalar())

    return _sum


@pytest.fixture
def entries(session):
    """Ledger entries of a partner, optionally of one type."""

    def _entries(partnerId: int, eventType: str = None):
        query = session.query(ActivityLog).filter(ActivityLog.partnerID == partnerId)
        if eventType:
            query = query.filter(ActivityLog.eventType == eventType)
        return query.order_by(ActivityLog.entryID).all()

    return _entries


@pytest.fixture
def load_partner(session):
    def _load(partnerId: int) -> Partner:
        session.expire_all()
        return session.get(Partner, partnerId)

    return _load


@pytest.fixture
def recorded_events():
    """Subscribe a recorder to every progression event."""
    from progression_system.events.event_bus import ProgressionEvents

    events = []

    def _recorder(name):
        async def _record(data):
            events.append((name, data))
        _record.__name__ = f"record_{name}"
        return _record

    for name in (
            ProgressionEvents.XP_GRANTED,
            ProgressionEvents.RANK_ACHIEVED,
            ProgressionEvents.RANK_ASSIGNED,
            ProgressionEvents.RANK_DEMOTED,
            ProgressionEvents.COMMISSION_CHANGED,
    ):
        eventBus.subscribe(name, _recorder(name))

    return events
