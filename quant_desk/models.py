"""
Domain Data Structures

Plain dataclasses shared by the services and both database managers.

NO database or HTTP dependencies - rows are converted into these objects by
the database managers and into Pydantic responses by the API routes.

Author: Quant Desk Development Team
Version: 1.0.0
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(str, Enum):
    """User role (closed set - every role-dispatched function covers all members)"""
    RESEARCHER = "RESEARCHER"
    PORTFOLIO_MANAGER = "PORTFOLIO_MANAGER"
    CLIENT = "CLIENT"


class TradeType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradeStatus(str, Enum):
    BOOKED = "BOOKED"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


# Configuration used when a strategy is created without one.
# Existing consumers depend on these exact keys and values.
DEFAULT_STRATEGY_CONFIGURATION: Dict[str, Any] = {
    'indicators': {
        'sma_short': 20,
        'sma_long': 50,
        'rsi_period': 14,
    },
    'entry_conditions': {
        'price_above_sma': True,
        'rsi_above': 50,
    },
    'exit_conditions': {
        'stop_loss_percent': 5,
        'take_profit_percent': 10,
    },
    'risk_management': {
        'max_position_size': 0.1,
        'max_drawdown': 0.15,
    },
}


def default_configuration() -> Dict[str, Any]:
    """Fresh copy of the default strategy configuration"""
    return copy.deepcopy(DEFAULT_STRATEGY_CONFIGURATION)


@dataclass
class User:
    """
    Authenticated principal

    Attributes:
        id: User ID
        username: Unique login name
        role: Role (immutable for the lifetime of the account)
        email: Unique email address
        name: Display name
        is_active: Disabled accounts cannot log in
    """
    id: int
    username: str
    role: Role
    email: str = ""
    name: str = ""
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class Strategy:
    """
    Strategy record

    `configuration` is an opaque document: it is stored and returned verbatim
    and never inspected beyond an emptiness check.

    Invariant: published_at is set iff is_public.
    """
    name: str
    owner_id: int
    configuration: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    is_public: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    owner_username: Optional[str] = None
    owner_name: Optional[str] = None

    def publish(self, now: datetime):
        """Private -> Public"""
        self.is_public = True
        self.published_at = now
        self.updated_at = now

    def unpublish(self, now: datetime):
        """Public -> Private"""
        self.is_public = False
        self.published_at = None
        self.updated_at = now


@dataclass
class ActivityLogEntry:
    username: str
    event_type: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class Product:
    name: str
    product_type: str
    owner_id: int
    underlying_asset: Optional[str] = None
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class Trade:
    """
    Simulated trade (no settlement - status is a label only)

    Prices are quoted per 100 notional, so a position's value is
    notional * price / 100.
    """
    product_id: int
    user_id: int
    trade_type: TradeType
    notional: float
    entry_price: Optional[float]
    current_price: Optional[float] = None
    status: TradeStatus = TradeStatus.BOOKED
    notes: Optional[str] = None
    id: Optional[int] = None
    trade_date: Optional[datetime] = None
    product: Optional[Product] = None
