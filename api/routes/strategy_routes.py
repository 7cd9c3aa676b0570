#!/usr/bin/env python3
"""
strategy_routes.py - RESTful API Routes for Strategy Management

Purpose:
- Strategy CRUD with role-based visibility
- Publish/unpublish lifecycle transitions
- Per-owner statistics

Endpoints:
- GET    /api/v1/strategies                     List visible strategies (?search=)
- GET    /api/v1/strategies/statistics          Caller's strategy counts
- GET    /api/v1/strategies/health              Service health
- GET    /api/v1/strategies/{id}                Get single strategy
- POST   /api/v1/strategies                     Create strategy (researchers)
- PUT    /api/v1/strategies/{id}                Update strategy (owner)
- DELETE /api/v1/strategies/{id}                Delete strategy (owner)
- POST   /api/v1/strategies/{id}/publish        Make public (owner)
- POST   /api/v1/strategies/{id}/unpublish      Make private (owner)

Domain exceptions raised by StrategyService are mapped to HTTP status codes
by the application-level exception handler (api.main).
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from loguru import logger

from api.dependencies import get_strategy_service
from api.models.strategy_models import (
    ErrorResponse,
    MessageResponse,
    StrategyCreate,
    StrategyListResponse,
    StrategyResponse,
    StrategyStatisticsResponse,
    StrategyUpdate,
)
from api.routes.auth_routes import get_current_user
from quant_desk.models import User
from quant_desk.strategy_service import StrategyService

# Router setup
router = APIRouter()


NOT_FOUND = {"model": ErrorResponse, "description": "Strategy not found"}
FORBIDDEN = {"model": ErrorResponse, "description": "Not permitted for this user"}


@router.get(
    "",
    response_model=StrategyListResponse,
    summary="List visible strategies",
    description="Researchers see their own, portfolio managers see all, clients see public strategies"
)
def list_strategies(
    search: Optional[str] = Query(default=None, description="Case-insensitive name filter"),
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    strategies = service.list_strategies(current_user, search)

    logger.info(f"Listed {len(strategies)} strategies for {current_user.username} (search={search!r})")

    return StrategyListResponse(
        total=len(strategies),
        strategies=[StrategyResponse.from_strategy(s, current_user) for s in strategies]
    )


@router.get(
    "/statistics",
    response_model=StrategyStatisticsResponse,
    summary="Strategy counts for the caller"
)
def get_statistics(
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    return StrategyStatisticsResponse(**service.statistics(current_user))


@router.get("/health", summary="Strategy service health")
def strategy_health():
    return {"status": "healthy", "service": "strategies"}


@router.get(
    "/{strategy_id}",
    response_model=StrategyResponse,
    summary="Get single strategy",
    responses={404: NOT_FOUND, 403: FORBIDDEN}
)
def get_strategy(
    strategy_id: int,
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    strategy = service.get(current_user, strategy_id)
    return StrategyResponse.from_strategy(strategy, current_user)


@router.post(
    "",
    response_model=StrategyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new strategy",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid name or description"},
        403: FORBIDDEN,
        409: {"model": ErrorResponse, "description": "Strategy name already exists"},
    }
)
def create_strategy(
    request: StrategyCreate,
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    """
    Create new strategy owned by the caller.

    An empty or missing configuration is replaced by the default configuration.
    """
    strategy = service.create(
        current_user,
        request.name,
        description=request.description,
        configuration=request.configuration,
        tags=request.tags
    )
    return StrategyResponse.from_strategy(strategy, current_user)


@router.put(
    "/{strategy_id}",
    response_model=StrategyResponse,
    summary="Update strategy",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid name or description"},
        403: FORBIDDEN,
        404: NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Strategy name already exists"},
    }
)
def update_strategy(
    strategy_id: int,
    request: StrategyUpdate,
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    strategy = service.update(
        current_user,
        strategy_id,
        request.name,
        description=request.description,
        configuration=request.configuration,
        tags=request.tags
    )
    return StrategyResponse.from_strategy(strategy, current_user)


@router.delete(
    "/{strategy_id}",
    response_model=MessageResponse,
    summary="Delete strategy",
    responses={403: FORBIDDEN, 404: NOT_FOUND}
)
def delete_strategy(
    strategy_id: int,
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    service.delete(current_user, strategy_id)
    return MessageResponse(message="Strategy deleted successfully")


@router.post(
    "/{strategy_id}/publish",
    response_model=StrategyResponse,
    summary="Publish strategy",
    responses={
        400: {"model": ErrorResponse, "description": "Strategy is already public"},
        403: FORBIDDEN,
        404: NOT_FOUND,
    }
)
def publish_strategy(
    strategy_id: int,
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    strategy = service.publish(current_user, strategy_id)
    return StrategyResponse.from_strategy(strategy, current_user)


@router.post(
    "/{strategy_id}/unpublish",
    response_model=StrategyResponse,
    summary="Unpublish strategy",
    responses={
        400: {"model": ErrorResponse, "description": "Strategy is already private"},
        403: FORBIDDEN,
        404: NOT_FOUND,
    }
)
def unpublish_strategy(
    strategy_id: int,
    current_user: User = Depends(get_current_user),
    service: StrategyService = Depends(get_strategy_service)
):
    strategy = service.unpublish(current_user, strategy_id)
    return StrategyResponse.from_strategy(strategy, current_user)
