"""
FastAPI Backend

REST API backend for Quant Desk.

Endpoints:
- /api/v1/auth: Registration and session login
- /api/v1/strategies: Strategy lifecycle with role-based visibility
- /api/v1/products, /api/v1/trades: Simulated trading
- /api/v1/portfolio, /api/v1/dashboard: Summaries

Usage:
    # Launch API server
    uvicorn api.main:app --reload --port 8000

    # API docs at http://localhost:8000/docs

Author: Quant Desk Development Team
Version: 1.0.0
"""

__all__ = []

__version__ = '1.0.0'
