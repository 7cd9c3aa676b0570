"""
Quant Desk

Multi-role quantitative research desk: strategy lifecycle with role-based
visibility, simulated trades, portfolio and dashboard summaries.

Modules:
- access_policy: view/modify rules and role-dispatched listing
- strategy_service: strategy lifecycle (create, update, publish, ...)
- trade_service: products and simulated trades
- portfolio_service: portfolio and dashboard summaries
- db_manager_sqlite / db_manager_postgres: interchangeable persistence
- activity_log: best-effort audit trail
- config_loader: layered YAML/env configuration

Author: Quant Desk Development Team
Version: 1.0.0
"""

__version__ = '1.0.0'
