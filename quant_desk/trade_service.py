"""
Trade Service

Product catalogue and simulated trade booking.

Trades are never settled: status is a label the owner can change, and
current_price starts equal to entry_price. Prices are quoted per 100
notional.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from quant_desk import activity_log
from quant_desk.activity_log import ActivityLogger
from quant_desk.application_metrics import TRADE_BOOKINGS
from quant_desk.exceptions import ForbiddenError, NotFoundError, ValidationError
from quant_desk.models import Product, Trade, TradeStatus, TradeType, User


def trade_pnl(trade: Trade) -> float:
    """
    Profit and loss of a single trade

    BUY:  (current - entry) * notional / 100
    SELL: (entry - current) * notional / 100

    Returns 0.0 when either price is missing.
    """
    if trade.current_price is None or trade.entry_price is None:
        return 0.0

    if TradeType(trade.trade_type) == TradeType.BUY:
        return (trade.current_price - trade.entry_price) * trade.notional / 100
    return (trade.entry_price - trade.current_price) * trade.notional / 100


class TradeService:
    """Products and simulated trades"""

    def __init__(self, db_manager, activity_logger: Optional[ActivityLogger] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.db = db_manager
        self.activity = activity_logger or ActivityLogger(db_manager, clock=clock)
        self.clock = clock

    # ========================================
    # PRODUCTS
    # ========================================

    def create_product(self, user: User, name: str, product_type: str,
                       underlying_asset: Optional[str] = None,
                       description: Optional[str] = None) -> Product:
        """Any authenticated user may create a product; the caller becomes its owner"""
        if not name or not name.strip():
            raise ValidationError("Product name is required")
        if not product_type or not product_type.strip():
            raise ValidationError("Product type is required")

        product = self.db.insert_product(Product(
            name=name,
            product_type=product_type,
            underlying_asset=underlying_asset,
            description=description,
            owner_id=user.id,
            created_at=self.clock(),
        ))
        logger.info(f"Created product: {product.name} (ID: {product.id}, owner={user.username})")
        return product

    def list_products(self) -> List[Product]:
        return self.db.list_products()

    def get_product(self, product_id: int) -> Product:
        product = self.db.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def list_my_products(self, user: User) -> List[Product]:
        return self.db.list_products_by_owner(user.id)

    # ========================================
    # TRADES
    # ========================================

    def book_trade(self, user: User, product_id: int, trade_type: TradeType,
                   notional: float, entry_price: float,
                   notes: Optional[str] = None) -> Trade:
        """
        Book a simulated trade

        Raises:
            NotFoundError: product does not exist
            ValidationError: non-positive notional or entry price
        """
        product = self.get_product(product_id)

        if notional is None or notional <= 0:
            raise ValidationError("Notional must be positive")
        if entry_price is None or entry_price <= 0:
            raise ValidationError("Entry price must be positive")

        trade = self.db.insert_trade(Trade(
            product_id=product.id,
            user_id=user.id,
            trade_type=TradeType(trade_type),
            notional=notional,
            entry_price=entry_price,
            current_price=entry_price,
            status=TradeStatus.BOOKED,
            notes=notes,
            trade_date=self.clock(),
        ))

        TRADE_BOOKINGS.labels(trade_type=trade.trade_type.value).inc()
        logger.info(
            f"Booked trade: {trade.trade_type.value} {notional} {product.name} "
            f"@ {entry_price} (ID: {trade.id}, user={user.username})"
        )

        self.activity.record(
            user.username,
            activity_log.TRADE_BOOKED,
            f"Booked {trade.trade_type.value} trade on {product.name}",
            'Trade',
            trade.id,
        )
        return trade

    def list_trades(self, user: User) -> List[Trade]:
        """Caller's trades, newest first"""
        return self.db.list_trades_by_user(user.id)

    def get_trade(self, user: User, trade_id: int) -> Trade:
        """
        Raises:
            NotFoundError: no such trade
            ForbiddenError: trade belongs to another user
        """
        trade = self.db.get_trade(trade_id)
        if trade is None:
            raise NotFoundError("Trade not found")
        if trade.user_id != user.id:
            raise ForbiddenError("Access denied: You can only view your own trades")
        return trade

    def update_trade_status(self, user: User, trade_id: int, status: str) -> Trade:
        """
        Set the status label of one of the caller's trades

        Args:
            status: Status name, case-insensitive (BOOKED, ACTIVE, CLOSED, CANCELLED)

        Raises:
            NotFoundError, ForbiddenError
            ValidationError: unknown status
        """
        trade = self.get_trade(user, trade_id)

        try:
            new_status = TradeStatus((status or '').strip().upper())
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")

        self.db.update_trade_status(trade_id, new_status)
        logger.info(f"Trade {trade_id} status: {trade.status.value} -> {new_status.value}")

        trade.status = new_status
        return trade
