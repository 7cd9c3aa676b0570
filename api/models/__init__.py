"""
Pydantic Data Models

Data validation models for FastAPI endpoints.

Model Categories:
- Auth Models: login, registration, user info
- Strategy Models: strategy requests and per-viewer responses
- Trade Models: products, trades, portfolio and dashboard summaries

Author: Quant Desk Development Team
Version: 1.0.0
"""

__all__ = ['auth_models', 'strategy_models', 'trade_models']

__version__ = '1.0.0'
