"""
FastAPI Routes

API route definitions for Quant Desk.

Route Categories:
- Auth Routes: /auth (register, login, logout, me)
- Strategy Routes: /strategies (CRUD, publish, statistics)
- Trade Routes: /products, /trades
- Portfolio Routes: /portfolio, /dashboard

Author: Quant Desk Development Team
Version: 1.0.0
"""

__all__ = ['auth_routes', 'strategy_routes', 'trade_routes', 'portfolio_routes']

__version__ = '1.0.0'
