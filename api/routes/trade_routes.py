"""
Trading Routes

Products and simulated trades.

Endpoints:
- GET  /api/v1/products              List all products
- POST /api/v1/products              Create product (owner = caller)
- GET  /api/v1/products/mine         Caller's products
- GET  /api/v1/products/{id}         Get single product
- POST /api/v1/trades/book           Book a simulated trade
- GET  /api/v1/trades                Caller's trades with P&L
- GET  /api/v1/trades/{id}           Get one of the caller's trades
- PUT  /api/v1/trades/{id}/status    Change trade status (?status=)

Author: Quant Desk Development Team
Version: 1.0.0
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from api.dependencies import get_trade_service
from api.models.trade_models import (
    ProductCreate,
    ProductResponse,
    TradeBookedResponse,
    TradeCreate,
    TradeResponse,
    TradeStatusResponse,
)
from api.routes.auth_routes import get_current_user
from quant_desk.models import User
from quant_desk.trade_service import TradeService


product_router = APIRouter()
trade_router = APIRouter()


# ========================================
# PRODUCTS
# ========================================

@product_router.get("", response_model=List[ProductResponse])
def list_products(
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    return [ProductResponse.from_product(p) for p in service.list_products()]


@product_router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    request: ProductCreate,
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    product = service.create_product(
        current_user,
        request.name,
        request.product_type,
        underlying_asset=request.underlying_asset,
        description=request.description
    )
    return ProductResponse.from_product(product)


@product_router.get("/mine", response_model=List[ProductResponse])
def list_my_products(
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    return [ProductResponse.from_product(p) for p in service.list_my_products(current_user)]


@product_router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    return ProductResponse.from_product(service.get_product(product_id))


# ========================================
# TRADES
# ========================================

@trade_router.post("/book", response_model=TradeBookedResponse)
def book_trade(
    request: TradeCreate,
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    """Book a simulated trade; current price starts at the entry price."""
    trade = service.book_trade(
        current_user,
        request.product_id,
        request.trade_type,
        request.notional,
        request.entry_price,
        notes=request.notes
    )
    return TradeBookedResponse(trade_id=trade.id, status=trade.status)


@trade_router.get("", response_model=List[TradeResponse])
def list_trades(
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    trades = service.list_trades(current_user)
    logger.debug(f"Listed {len(trades)} trades for {current_user.username}")
    return [TradeResponse.from_trade(t) for t in trades]


@trade_router.get("/{trade_id}", response_model=TradeResponse)
def get_trade(
    trade_id: int,
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    return TradeResponse.from_trade(service.get_trade(current_user, trade_id))


@trade_router.put("/{trade_id}/status", response_model=TradeStatusResponse)
def update_trade_status(
    trade_id: int,
    status: str = Query(..., description="BOOKED, ACTIVE, CLOSED or CANCELLED"),
    current_user: User = Depends(get_current_user),
    service: TradeService = Depends(get_trade_service)
):
    trade = service.update_trade_status(current_user, trade_id, status)
    return TradeStatusResponse(status=trade.status)
