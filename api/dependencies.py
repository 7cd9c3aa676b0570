"""
Shared FastAPI Dependencies

Database manager, clock and service factories injected into the routes.
Tests replace get_db_manager / get_clock through app.dependency_overrides.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Callable

from fastapi import Depends, HTTPException, Request, status

from quant_desk.activity_log import ActivityLogger
from quant_desk.portfolio_service import PortfolioService
from quant_desk.strategy_service import StrategyService
from quant_desk.trade_service import TradeService


def get_db_manager(request: Request):
    """
    Get the database manager created at startup.

    Raises:
        HTTPException 503: manager not initialized
    """
    db_manager = getattr(request.app.state, 'db_manager', None)
    if db_manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized"
        )
    return db_manager


def get_clock() -> Callable[[], datetime]:
    return datetime.now


def get_activity_logger(db=Depends(get_db_manager), clock=Depends(get_clock)) -> ActivityLogger:
    return ActivityLogger(db, clock=clock)


def get_strategy_service(db=Depends(get_db_manager),
                         activity=Depends(get_activity_logger),
                         clock=Depends(get_clock)) -> StrategyService:
    return StrategyService(db, activity, clock=clock)


def get_trade_service(db=Depends(get_db_manager),
                      activity=Depends(get_activity_logger),
                      clock=Depends(get_clock)) -> TradeService:
    return TradeService(db, activity, clock=clock)


def get_portfolio_service(db=Depends(get_db_manager), clock=Depends(get_clock)) -> PortfolioService:
    return PortfolioService(db, clock=clock)
