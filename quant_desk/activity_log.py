"""
Activity Log

Best-effort audit trail of user actions (strategy lifecycle, logins).

Writes happen after the primary mutation has been committed. A failure to
write the log entry is logged and counted but never propagated: it must not
fail or roll back the operation being recorded.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from quant_desk.application_metrics import ACTIVITY_LOG_WRITES
from quant_desk.models import ActivityLogEntry


# Event types
STRATEGY_CREATED = 'STRATEGY_CREATED'
STRATEGY_UPDATED = 'STRATEGY_UPDATED'
STRATEGY_DELETED = 'STRATEGY_DELETED'
STRATEGY_PUBLISHED = 'STRATEGY_PUBLISHED'
STRATEGY_UNPUBLISHED = 'STRATEGY_UNPUBLISHED'
TRADE_BOOKED = 'TRADE_BOOKED'
LOGIN_SUCCESS = 'LOGIN_SUCCESS'
LOGIN_FAILURE = 'LOGIN_FAILURE'
LOGOUT = 'LOGOUT'


class ActivityLogger:
    """
    Fire-and-forget activity log sink backed by a database manager.

    Usage:
        activity = ActivityLogger(db_manager)
        activity.record('researcher1', STRATEGY_CREATED,
                        'Created strategy: Momentum', 'Strategy', 42)
    """

    def __init__(self, db_manager, clock: Callable[[], datetime] = datetime.now):
        """
        Args:
            db_manager: SQLiteDatabaseManager or PostgresDatabaseManager
            clock: Timestamp source (injectable for tests)
        """
        self.db = db_manager
        self.clock = clock

    def record(self, username: str, event_type: str, message: str,
               entity_type: Optional[str] = None, entity_id: Optional[int] = None) -> bool:
        """
        Record an activity entry.

        Returns:
            True if the entry was written, False otherwise (never raises)
        """
        entry = ActivityLogEntry(
            username=username,
            event_type=event_type,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            created_at=self.clock(),
        )

        try:
            self.db.insert_activity(entry)
        except Exception as e:
            ACTIVITY_LOG_WRITES.labels(event_type=event_type, status='failed').inc()
            logger.warning(f"Activity log write failed: {event_type} by {username} ({e})")
            return False

        ACTIVITY_LOG_WRITES.labels(event_type=event_type, status='success').inc()
        logger.debug(f"Activity recorded: {event_type} by {username}")
        return True

    def recent(self, username: str, limit: int = 20) -> List[ActivityLogEntry]:
        """Most recent entries for a user, newest first"""
        return self.db.list_activity(username, limit=limit)
