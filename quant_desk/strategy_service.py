"""
Strategy Service

Strategy lifecycle and role-based access: create, update, delete,
publish/unpublish, role-filtered listing and search, per-owner statistics.

Every operation takes the authenticated principal explicitly and resolves
failures to domain exceptions (quant_desk.exceptions), which the API layer
maps to HTTP status codes.

Check order for mutations on an existing strategy:
    NotFound -> Forbidden -> Validation -> NameConflict -> state guard

Author: Quant Desk Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from quant_desk import access_policy
from quant_desk import activity_log
from quant_desk.activity_log import ActivityLogger
from quant_desk.application_metrics import record_visibility_transition
from quant_desk.exceptions import (
    AlreadyPrivateError,
    AlreadyPublicError,
    ForbiddenError,
    NameConflictError,
    NotFoundError,
    ValidationError,
)
from quant_desk.metrics_decorators import track_strategy_operation
from quant_desk.models import Role, Strategy, User, default_configuration


NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 2000

ENTITY_TYPE = 'Strategy'


def validate_strategy_fields(name: Optional[str], description: Optional[str]):
    """
    Check field bounds

    Raises:
        ValidationError: blank name, name outside 2-100 chars, or description over 2000 chars
    """
    if name is None or not name.strip():
        raise ValidationError("Strategy name is required")

    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise ValidationError(
            f"Strategy name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
        )

    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")


class StrategyService:
    """
    Strategy lifecycle operations

    Usage:
        service = StrategyService(db_manager, ActivityLogger(db_manager))
        strategy = service.create(user, 'Momentum', description='Trend following')
        service.publish(user, strategy.id)
    """

    def __init__(self, db_manager, activity_logger: Optional[ActivityLogger] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Args:
            db_manager: SQLiteDatabaseManager or PostgresDatabaseManager
            activity_logger: Activity log sink (default: one backed by db_manager)
            clock: Timestamp source (injectable for tests)
        """
        self.db = db_manager
        self.activity = activity_logger or ActivityLogger(db_manager, clock=clock)
        self.clock = clock

    # ========================================
    # QUERIES
    # ========================================

    @track_strategy_operation('list')
    def list_strategies(self, user: User, search: Optional[str] = None) -> List[Strategy]:
        """
        Strategies visible to the user, role-ordered

        A blank or whitespace-only search term behaves as no search.
        """
        term = search.strip() if search else None
        name_contains = term or None

        if user.role == Role.RESEARCHER:
            return self.db.list_strategies_by_owner(user.id, name_contains=name_contains)

        elif user.role == Role.PORTFOLIO_MANAGER:
            return self.db.list_all_strategies(name_contains=name_contains)

        elif user.role == Role.CLIENT:
            return self.db.list_public_strategies(name_contains=name_contains)

        return []

    def _load(self, strategy_id: int) -> Strategy:
        strategy = self.db.get_strategy(strategy_id)
        if strategy is None:
            raise NotFoundError("Strategy not found")
        return strategy

    def _load_for_modification(self, user: User, strategy_id: int, action: str) -> Strategy:
        strategy = self._load(strategy_id)
        if not access_policy.can_modify(user, strategy):
            logger.warning(f"Denied {action}: user={user.username}, strategy_id={strategy_id}")
            raise ForbiddenError(f"Access denied: You can only {action} your own strategies")
        return strategy

    @track_strategy_operation('get')
    def get(self, user: User, strategy_id: int) -> Strategy:
        """
        Raises:
            NotFoundError: no such strategy
            ForbiddenError: user may not view it
        """
        strategy = self._load(strategy_id)
        if not access_policy.can_view(user, strategy):
            raise ForbiddenError("Access denied: You don't have permission to view this strategy")
        return strategy

    @track_strategy_operation('statistics')
    def statistics(self, user: User) -> Dict[str, int]:
        """
        Counts of strategies owned by the user.

        Owner-scoped for every role: a portfolio manager gets the counts of
        strategies they own, not of all strategies.
        """
        total = self.db.count_strategies_by_owner(user.id)
        public = self.db.count_public_strategies_by_owner(user.id)

        return {
            'total_strategies': total,
            'public_strategies': public,
            'private_strategies': total - public,
        }

    # ========================================
    # MUTATIONS
    # ========================================

    @track_strategy_operation('create')
    def create(self, user: User, name: str, description: Optional[str] = None,
               configuration: Optional[Dict[str, Any]] = None,
               tags: Optional[List[str]] = None) -> Strategy:
        """
        Create a private strategy owned by the user

        Raises:
            ForbiddenError: user is not a researcher
            ValidationError: field bounds violated
            NameConflictError: user already owns a strategy with this name
        """
        if user.role != Role.RESEARCHER:
            logger.warning(f"Denied create: user={user.username} role={user.role.value}")
            raise ForbiddenError("Access denied: Only researchers can create strategies")

        validate_strategy_fields(name, description)

        if self.db.strategy_name_exists(user.id, name):
            raise NameConflictError("A strategy with this name already exists")

        now = self.clock()
        strategy = Strategy(
            name=name,
            description=description,
            configuration=configuration if configuration else default_configuration(),
            tags=list(tags or []),
            is_public=False,
            owner_id=user.id,
            created_at=now,
            updated_at=now,
            published_at=None,
        )

        saved = self.db.insert_strategy(strategy)
        logger.info(f"Created strategy: {saved.name} (ID: {saved.id}, owner={user.username})")

        self.activity.record(
            user.username,
            activity_log.STRATEGY_CREATED,
            f"Created strategy: {saved.name}",
            ENTITY_TYPE,
            saved.id,
        )
        return saved

    @track_strategy_operation('update')
    def update(self, user: User, strategy_id: int, name: str, description: Optional[str] = None,
               configuration: Optional[Dict[str, Any]] = None,
               tags: Optional[List[str]] = None) -> Strategy:
        """
        Replace name, description, configuration and tags.

        Visibility and published_at are left untouched. Renaming a strategy to
        its own name (including a case-only change) is allowed.

        Raises:
            NotFoundError, ForbiddenError, ValidationError, NameConflictError
        """
        strategy = self._load_for_modification(user, strategy_id, 'modify')

        validate_strategy_fields(name, description)

        if self.db.strategy_name_exists(user.id, name, exclude_id=strategy_id):
            raise NameConflictError("A strategy with this name already exists")

        old_name = strategy.name
        strategy.name = name
        strategy.description = description
        strategy.configuration = configuration if configuration is not None else {}
        strategy.tags = list(tags or [])
        strategy.updated_at = self.clock()

        saved = self.db.update_strategy(strategy)
        logger.info(f"Updated strategy: {old_name} -> {saved.name} (ID: {strategy_id})")

        self.activity.record(
            user.username,
            activity_log.STRATEGY_UPDATED,
            f"Updated strategy: {old_name} -> {name}",
            ENTITY_TYPE,
            strategy_id,
        )
        return saved

    @track_strategy_operation('delete')
    def delete(self, user: User, strategy_id: int):
        """
        Raises:
            NotFoundError, ForbiddenError
        """
        strategy = self._load_for_modification(user, strategy_id, 'delete')

        if not self.db.delete_strategy(strategy_id):
            raise NotFoundError("Strategy not found")

        logger.info(f"Deleted strategy: {strategy.name} (ID: {strategy_id})")

        self.activity.record(
            user.username,
            activity_log.STRATEGY_DELETED,
            f"Deleted strategy: {strategy.name}",
            ENTITY_TYPE,
            strategy_id,
        )

    @track_strategy_operation('publish')
    def publish(self, user: User, strategy_id: int) -> Strategy:
        """
        Private -> Public

        Raises:
            NotFoundError, ForbiddenError
            AlreadyPublicError: strategy is already public (state unchanged)
        """
        strategy = self._load_for_modification(user, strategy_id, 'publish')

        if strategy.is_public:
            raise AlreadyPublicError("Strategy is already public")

        strategy.publish(self.clock())
        saved = self.db.update_strategy(strategy)
        record_visibility_transition('publish')
        logger.info(f"Published strategy: {saved.name} (ID: {strategy_id})")

        self.activity.record(
            user.username,
            activity_log.STRATEGY_PUBLISHED,
            f"Published strategy: {saved.name}",
            ENTITY_TYPE,
            strategy_id,
        )
        return saved

    @track_strategy_operation('unpublish')
    def unpublish(self, user: User, strategy_id: int) -> Strategy:
        """
        Public -> Private

        Raises:
            NotFoundError, ForbiddenError
            AlreadyPrivateError: strategy is already private (state unchanged)
        """
        strategy = self._load_for_modification(user, strategy_id, 'unpublish')

        if not strategy.is_public:
            raise AlreadyPrivateError("Strategy is already private")

        strategy.unpublish(self.clock())
        saved = self.db.update_strategy(strategy)
        record_visibility_transition('unpublish')
        logger.info(f"Unpublished strategy: {saved.name} (ID: {strategy_id})")

        self.activity.record(
            user.username,
            activity_log.STRATEGY_UNPUBLISHED,
            f"Unpublished strategy: {saved.name}",
            ENTITY_TYPE,
            strategy_id,
        )
        return saved
