"""
Strategy Access Policy

Role-based visibility and ownership rules for strategies.

Rules:
- Owner always sees their own strategy, whatever its visibility
- Portfolio managers see every strategy
- Clients see public strategies only
- Only a researcher who owns a strategy may modify, delete or publish it

Pure functions - no I/O. StrategyService applies the same rules against
the database managers; these functions define the semantics and back the
per-viewer permission flags on every response.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Iterable, List, Optional

from quant_desk.models import Role, Strategy, User


def is_owner(user: Optional[User], strategy: Strategy) -> bool:
    return user is not None and strategy.owner_id is not None and user.id == strategy.owner_id


def can_view(user: Optional[User], strategy: Strategy) -> bool:
    """
    Check read access

    Args:
        user: Authenticated principal
        strategy: Strategy record

    Returns:
        True if the user may view the strategy
    """
    if user is None:
        return False

    if is_owner(user, strategy):
        return True

    if user.role == Role.PORTFOLIO_MANAGER:
        return True

    if user.role == Role.CLIENT:
        return strategy.is_public

    return False


def can_modify(user: Optional[User], strategy: Strategy) -> bool:
    """Role and ownership are both required"""
    return user is not None and user.role == Role.RESEARCHER and is_owner(user, strategy)


def can_publish(user: Optional[User], strategy: Strategy) -> bool:
    return can_modify(user, strategy) and not strategy.is_public


def can_unpublish(user: Optional[User], strategy: Strategy) -> bool:
    return can_modify(user, strategy) and strategy.is_public


def name_matches(strategy: Strategy, search_term: str) -> bool:
    """Case-insensitive substring match on name only"""
    return search_term.lower() in strategy.name.lower()


def _updated_key(strategy: Strategy) -> datetime:
    return strategy.updated_at or datetime.min


def _published_key(strategy: Strategy):
    return (strategy.published_at or datetime.min, strategy.updated_at or datetime.min)


def list_visible(user: User, strategies: Iterable[Strategy],
                 search_term: Optional[str] = None) -> List[Strategy]:
    """
    Role-dispatched listing over an in-memory collection

    - RESEARCHER: own strategies, most recently updated first
    - PORTFOLIO_MANAGER: all strategies, most recently updated first
    - CLIENT: public strategies, most recently published first (ties by update)

    Args:
        user: Viewer
        strategies: Candidate strategies
        search_term: Optional case-insensitive name filter

    Returns:
        Ordered list of strategies the viewer may see
    """
    candidates = list(strategies)
    if search_term:
        candidates = [s for s in candidates if name_matches(s, search_term)]

    if user.role == Role.RESEARCHER:
        owned = [s for s in candidates if is_owner(user, s)]
        return sorted(owned, key=_updated_key, reverse=True)

    elif user.role == Role.PORTFOLIO_MANAGER:
        return sorted(candidates, key=_updated_key, reverse=True)

    elif user.role == Role.CLIENT:
        public = [s for s in candidates if s.is_public]
        return sorted(public, key=_published_key, reverse=True)

    return []
