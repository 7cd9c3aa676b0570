"""
Trading Pydantic Models

Request/response models for product, trade, portfolio and dashboard
endpoints.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from quant_desk.models import Product, Trade, TradeStatus, TradeType
from quant_desk.trade_service import trade_pnl


# ============================================================================
# Products
# ============================================================================

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    product_type: str = Field(..., min_length=1, max_length=64, description="Product type (e.g. NOTE, OPTION)")
    underlying_asset: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class ProductResponse(BaseModel):
    id: int
    name: str
    product_type: str
    underlying_asset: Optional[str] = None
    description: Optional[str] = None
    owner_id: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_product(cls, product: Product) -> 'ProductResponse':
        return cls(
            id=product.id,
            name=product.name,
            product_type=product.product_type,
            underlying_asset=product.underlying_asset,
            description=product.description,
            owner_id=product.owner_id,
            created_at=product.created_at,
        )


# ============================================================================
# Trades
# ============================================================================

class TradeCreate(BaseModel):
    """Trade booking request (POST /trades/book)"""
    product_id: int = Field(..., description="Product to trade")
    trade_type: TradeType = Field(..., description="BUY or SELL")
    notional: float = Field(..., gt=0, description="Notional amount")
    entry_price: float = Field(..., gt=0, description="Entry price per 100 notional")
    notes: Optional[str] = None


class TradeBookedResponse(BaseModel):
    trade_id: int
    status: TradeStatus
    message: str = "Trade booked successfully"


class TradeResponse(BaseModel):
    """Trade with side-aware P&L"""
    id: int
    product_id: int
    product_name: Optional[str] = None
    trade_type: TradeType
    status: TradeStatus
    notional: float
    entry_price: Optional[float] = None
    current_price: Optional[float] = None
    pnl: float
    notes: Optional[str] = None
    trade_date: Optional[datetime] = None

    @classmethod
    def from_trade(cls, trade: Trade) -> 'TradeResponse':
        return cls(
            id=trade.id,
            product_id=trade.product_id,
            product_name=trade.product.name if trade.product else None,
            trade_type=trade.trade_type,
            status=trade.status,
            notional=trade.notional,
            entry_price=trade.entry_price,
            current_price=trade.current_price,
            pnl=trade_pnl(trade),
            notes=trade.notes,
            trade_date=trade.trade_date,
        )


class TradeStatusResponse(BaseModel):
    message: str = "Trade status updated successfully"
    status: TradeStatus


# ============================================================================
# Portfolio & Dashboard
# ============================================================================

class PositionProduct(BaseModel):
    name: Optional[str] = None
    product_type: Optional[str] = None
    underlying_asset: Optional[str] = None


class PositionResponse(BaseModel):
    id: int
    product: PositionProduct
    trade_type: TradeType
    quantity: float
    entry_price: Optional[float] = None
    current_price: Optional[float] = None
    total_investment: float
    current_value: float
    unrealized_pnl: float


class PortfolioTotals(BaseModel):
    total_value: float
    total_investment: float
    total_pnl: float
    pnl_percentage: float
    position_count: int


class PortfolioSummaryResponse(BaseModel):
    summary: PortfolioTotals
    positions: List[PositionResponse]


class DashboardSummaryResponse(BaseModel):
    strategies_count: int
    trades_count: int
    products_count: int
    total_portfolio_value: float
    last_activity: Optional[datetime] = None
    active_sessions: int = 0
