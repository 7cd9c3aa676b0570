"""
Portfolio & Dashboard Summaries

Read-only aggregates over a user's simulated trades and activity.

Position valuation is side-agnostic: a SELL position is valued exactly like
a BUY (current value minus invested amount). Per-trade P&L that respects
the trade side is available from trade_service.trade_pnl.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Any, Callable, Dict, List

from loguru import logger

from quant_desk.application_metrics import PORTFOLIO_POSITION_COUNT
from quant_desk.models import Role, Trade, User


def position_investment(trade: Trade) -> float:
    """notional * entry / 100, or the bare notional when entry is unknown"""
    if trade.entry_price is None:
        return trade.notional
    return trade.notional * trade.entry_price / 100


def position_value(trade: Trade) -> float:
    """notional * (current or entry) / 100, or the bare notional when both are unknown"""
    price = trade.current_price if trade.current_price is not None else trade.entry_price
    if price is None:
        return trade.notional
    return trade.notional * price / 100


class PortfolioService:
    """Portfolio and dashboard summaries"""

    def __init__(self, db_manager, clock: Callable[[], datetime] = datetime.now):
        self.db = db_manager
        self.clock = clock

    def portfolio_summary(self, user: User) -> Dict[str, Any]:
        """
        Portfolio totals and per-position breakdown

        Returns:
            {'summary': {...totals...}, 'positions': [...]}
        """
        trades = self.db.list_trades_by_user(user.id)

        positions: List[Dict[str, Any]] = []
        total_investment = 0.0
        total_value = 0.0

        for trade in trades:
            investment = position_investment(trade)
            value = position_value(trade)
            total_investment += investment
            total_value += value

            product = trade.product
            positions.append({
                'id': trade.id,
                'product': {
                    'name': product.name if product else None,
                    'product_type': product.product_type if product else None,
                    'underlying_asset': product.underlying_asset if product else None,
                },
                'trade_type': trade.trade_type.value,
                'quantity': trade.notional,
                'entry_price': trade.entry_price,
                'current_price': trade.current_price,
                'total_investment': investment,
                'current_value': value,
                'unrealized_pnl': value - investment,
            })

        total_pnl = total_value - total_investment
        pnl_percentage = (total_pnl / total_investment) * 100 if total_investment > 0 else 0.0

        PORTFOLIO_POSITION_COUNT.observe(len(trades))
        logger.debug(f"Portfolio summary: user={user.username}, positions={len(trades)}")

        return {
            'summary': {
                'total_value': total_value,
                'total_investment': total_investment,
                'total_pnl': total_pnl,
                'pnl_percentage': pnl_percentage,
                'position_count': len(trades),
            },
            'positions': positions,
        }

    def dashboard_summary(self, user: User) -> Dict[str, Any]:
        """
        Counts and headline figures for the user's dashboard

        products_count is only reported for portfolio managers (0 otherwise).
        last_activity is the newest activity log entry, falling back to last login.
        active_sessions counts the user's sessions that have not yet expired.
        """
        trades = self.db.list_trades_by_user(user.id)

        products_count = 0
        if user.role == Role.PORTFOLIO_MANAGER:
            products_count = len(self.db.list_products_by_owner(user.id))

        total_portfolio_value = sum(
            trade.current_price * trade.notional / 100
            for trade in trades
            if trade.current_price is not None and trade.notional is not None
        )

        recent = self.db.list_activity(user.username, limit=1)
        last_activity = recent[0].created_at if recent else user.last_login

        return {
            'strategies_count': self.db.count_strategies_by_owner(user.id),
            'trades_count': len(trades),
            'products_count': products_count,
            'total_portfolio_value': total_portfolio_value,
            'last_activity': last_activity,
            'active_sessions': self.db.count_active_sessions(user.id, self.clock()),
        }
