"""
Portfolio & Dashboard Routes

Endpoints:
- GET /api/v1/portfolio/summary    Portfolio totals and positions
- GET /api/v1/dashboard/summary    Dashboard counts and headline figures

Author: Quant Desk Development Team
Version: 1.0.0
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_portfolio_service
from api.models.trade_models import DashboardSummaryResponse, PortfolioSummaryResponse
from api.routes.auth_routes import get_current_user
from quant_desk.models import User
from quant_desk.portfolio_service import PortfolioService


portfolio_router = APIRouter()
dashboard_router = APIRouter()


@portfolio_router.get("/summary", response_model=PortfolioSummaryResponse)
def portfolio_summary(
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service)
):
    return service.portfolio_summary(current_user)


@dashboard_router.get("/summary", response_model=DashboardSummaryResponse)
def dashboard_summary(
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service)
):
    return service.dashboard_summary(current_user)
