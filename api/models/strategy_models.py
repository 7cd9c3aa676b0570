#!/usr/bin/env python3
"""
strategy_models.py - Pydantic Models for Strategy API

Purpose:
- Define request/response models for Strategy endpoints
- Enforce name/description bounds at the request boundary (422 on violation)
- Carry per-viewer permission flags on every response

Design:
- StrategyBase: fields shared by create and update
- StrategyCreate: POST request model (configuration optional, defaults applied by service)
- StrategyUpdate: PUT request model (full replacement of editable fields)
- StrategyResponse: response model with owner info and can_edit/can_delete/can_publish
- StrategyListResponse: list response with total
- StrategyStatisticsResponse: per-owner counts
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from quant_desk import access_policy
from quant_desk.models import Strategy, User


class StrategyBase(BaseModel):
    """Base model with fields shared across create and update"""
    name: str = Field(
        ...,
        min_length=2,
        max_length=100,
        description="Strategy name (unique per owner, case-insensitive)"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Strategy description"
    )
    configuration: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Strategy configuration document (stored verbatim)"
    )
    tags: Optional[List[str]] = Field(
        default=None,
        description="Ordered list of tags"
    )


class StrategyCreate(StrategyBase):
    """Model for creating new strategy (POST /strategies)"""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Momentum",
            "description": "SMA crossover with RSI confirmation",
            "configuration": {
                "indicators": {"sma_short": 10, "sma_long": 30}
            },
            "tags": ["momentum", "equities"]
        }
    })


class StrategyUpdate(StrategyBase):
    """Model for updating existing strategy (PUT /strategies/{id})"""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Momentum v2",
            "description": "Tighter stop loss",
            "configuration": {
                "exit_conditions": {"stop_loss_percent": 3}
            },
            "tags": ["momentum"]
        }
    })


class StrategyResponse(BaseModel):
    """Model for strategy response, evaluated for one viewer"""
    id: int = Field(..., description="Strategy ID")
    name: str
    description: Optional[str] = None
    configuration: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    is_public: bool
    owner_id: int
    owner_username: Optional[str] = None
    owner_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None
    can_edit: bool = Field(..., description="Viewer may update this strategy")
    can_delete: bool = Field(..., description="Viewer may delete this strategy")
    can_publish: bool = Field(..., description="Viewer may publish this strategy")

    @classmethod
    def from_strategy(cls, strategy: Strategy, viewer: User) -> 'StrategyResponse':
        can_modify = access_policy.can_modify(viewer, strategy)
        return cls(
            id=strategy.id,
            name=strategy.name,
            description=strategy.description,
            configuration=strategy.configuration or {},
            tags=strategy.tags or [],
            is_public=strategy.is_public,
            owner_id=strategy.owner_id,
            owner_username=strategy.owner_username,
            owner_name=strategy.owner_name,
            created_at=strategy.created_at,
            updated_at=strategy.updated_at,
            published_at=strategy.published_at,
            can_edit=can_modify,
            can_delete=can_modify,
            can_publish=access_policy.can_publish(viewer, strategy),
        )


class StrategyListResponse(BaseModel):
    """Model for strategy list (GET /strategies)"""
    total: int = Field(..., description="Number of strategies returned")
    strategies: List[StrategyResponse] = Field(..., description="List of strategies")


class StrategyStatisticsResponse(BaseModel):
    """Counts of strategies owned by the caller"""
    total_strategies: int
    public_strategies: int
    private_strategies: int


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Model for error responses"""
    detail: str = Field(..., description="Error message")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "detail": "Strategy not found"
        }
    })
