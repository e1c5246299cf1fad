"""
Service Container - Dependency Injection Container

Builds the progression components from configuration around one record
store. Components are lazy-loaded on first access.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional
import logging

from progression import config
from progression.db.record_store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for the progression engine.

    The record store is injected; everything else is derived from config
    unless overridden.
    """

    store: RecordStore
    default_badge_goals: Dict[str, int] = field(default_factory=dict)

    _ledger: Optional[object] = field(default=None, init=False, repr=False)
    _badges: Optional[object] = field(default=None, init=False, repr=False)
    _streaks: Optional[object] = field(default=None, init=False, repr=False)
    _progression_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def ledger(self):
        """Get PointsLedger instance (lazy-loaded)"""
        if self._ledger is None:
            from progression.gamification.points_ledger import PointsLedger
            from progression.gamification.thresholds import ThresholdTable
            self._ledger = PointsLedger(self.store, ThresholdTable(config.level_thresholds()))
            logger.debug("PointsLedger instantiated")
        return self._ledger

    @property
    def badges(self):
        """Get BadgeStateMachine instance (lazy-loaded)"""
        if self._badges is None:
            from progression.gamification.badge_system import BadgeStateMachine, ProgressMode
            self._badges = BadgeStateMachine(
                self.store,
                self.ledger,
                default_goals=self.default_badge_goals,
                progress_mode=ProgressMode(config.BADGE_PROGRESS_ON_LEVEL_UP),
            )
            logger.debug("BadgeStateMachine instantiated")
        return self._badges

    @property
    def streaks(self):
        """Get StreakTracker instance (lazy-loaded)"""
        if self._streaks is None:
            from progression.gamification.streak_system import StreakTracker
            self._streaks = StreakTracker(self.store, timedelta(hours=config.STREAK_WINDOW_HOURS))
            logger.debug("StreakTracker instantiated")
        return self._streaks

    @property
    def progression_service(self):
        """Get ProgressionService instance (lazy-loaded)"""
        if self._progression_service is None:
            from progression.services.progression_service import ProgressionService
            self._progression_service = ProgressionService(
                self.ledger,
                self.badges,
                self.streaks,
                consistency_milestones=config.consistency_streak_milestones(),
            )
            logger.debug("ProgressionService instantiated")
        return self._progression_service


# Global container instance (initialized in main.py or by the host application)
_container: Optional[ServiceContainer] = None


def init_container(store: RecordStore, **kwargs) -> ServiceContainer:
    """Create the global container around a record store"""
    global _container
    _container = ServiceContainer(store=store, **kwargs)
    logger.info(f"Service container initialized with {type(store).__name__}")
    return _container


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: init_container() has not been called
    """
    if _container is None:
        raise RuntimeError("Service container not initialized. Call init_container() first.")
    return _container
