"""Global test fixtures and utilities for progression engine tests"""
import pytest
from datetime import datetime, timedelta, timezone

from progression.db.memory_store import InMemoryRecordStore
from progression.gamification.badge_system import BadgeStateMachine
from progression.gamification.points_ledger import PointsLedger
from progression.gamification.streak_system import StreakTracker
from progression.gamification.thresholds import ThresholdTable
from progression.services.progression_service import ProgressionService


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def store():
    """Fresh in-memory record store"""
    return InMemoryRecordStore()


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def threshold_table():
    """Default level thresholds (0, 100, 300, 600, 1000)"""
    return ThresholdTable()


@pytest.fixture
def ledger(store, threshold_table):
    return PointsLedger(store, threshold_table)


@pytest.fixture
def badges(store, ledger):
    return BadgeStateMachine(store, ledger)


@pytest.fixture
def streaks(store):
    return StreakTracker(store)


@pytest.fixture
def service(ledger, badges, streaks):
    return ProgressionService(ledger, badges, streaks)


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "u1"


@pytest.fixture
def base_time():
    """Fixed reference instant for time-dependent tests"""
    return datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def hours():
    """Shorthand for timedelta(hours=n)"""
    return lambda n: timedelta(hours=n)
