"""
Unit Tests for Portfolio Service

Portfolio valuation and dashboard summaries.
"""

import sqlite3
from datetime import datetime, timedelta

import pytest
from prometheus_client import REGISTRY

from quant_desk.models import Role, Trade, TradeType
from quant_desk.portfolio_service import PortfolioService, position_investment, position_value


@pytest.fixture
def portfolio_service(db_manager):
    return PortfolioService(db_manager)


@pytest.fixture
def product(trade_service, portfolio_manager):
    return trade_service.create_product(portfolio_manager, 'Barrier Note', 'NOTE', underlying_asset='SX5E')


def set_current_price(db_path, trade_id, price):
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE trades SET current_price = ? WHERE id = ?", (price, trade_id))
    conn.commit()
    conn.close()


class TestPositionValuation:
    """Test per-position helpers"""

    def test_investment_and_value(self):
        trade = Trade(product_id=1, user_id=1, trade_type=TradeType.BUY,
                      notional=10000, entry_price=98, current_price=101)
        assert position_investment(trade) == pytest.approx(9800)
        assert position_value(trade) == pytest.approx(10100)

    def test_missing_prices_fall_back(self):
        trade = Trade(product_id=1, user_id=1, trade_type=TradeType.BUY,
                      notional=5000, entry_price=None, current_price=None)
        assert position_investment(trade) == 5000
        assert position_value(trade) == 5000

    def test_missing_current_uses_entry(self):
        trade = Trade(product_id=1, user_id=1, trade_type=TradeType.SELL,
                      notional=5000, entry_price=90, current_price=None)
        assert position_value(trade) == pytest.approx(4500)


class TestPortfolioSummary:
    """Test portfolio totals"""

    def test_empty_portfolio(self, portfolio_service, client_user):
        result = portfolio_service.portfolio_summary(client_user)

        assert result['positions'] == []
        assert result['summary'] == {
            'total_value': 0.0,
            'total_investment': 0.0,
            'total_pnl': 0.0,
            'pnl_percentage': 0.0,
            'position_count': 0,
        }

    def test_totals(self, portfolio_service, trade_service, db_path, product, client_user):
        buy = trade_service.book_trade(client_user, product.id, TradeType.BUY, 10000, 100)
        sell = trade_service.book_trade(client_user, product.id, TradeType.SELL, 20000, 50)
        set_current_price(db_path, buy.id, 110)
        set_current_price(db_path, sell.id, 40)

        result = portfolio_service.portfolio_summary(client_user)
        summary = result['summary']

        # investment 10000 + 10000, value 11000 + 8000; valuation ignores side
        assert summary['total_investment'] == pytest.approx(20000)
        assert summary['total_value'] == pytest.approx(19000)
        assert summary['total_pnl'] == pytest.approx(-1000)
        assert summary['pnl_percentage'] == pytest.approx(-5.0)
        assert summary['position_count'] == 2

        by_id = {p['id']: p for p in result['positions']}
        assert by_id[buy.id]['unrealized_pnl'] == pytest.approx(1000)
        assert by_id[sell.id]['unrealized_pnl'] == pytest.approx(-2000)
        assert by_id[buy.id]['product']['underlying_asset'] == 'SX5E'

    def test_position_count_observed_without_user_label(self, portfolio_service, client_user):
        before = REGISTRY.get_sample_value('portfolio_position_count_count') or 0

        portfolio_service.portfolio_summary(client_user)

        assert REGISTRY.get_sample_value('portfolio_position_count_count') == before + 1
        assert REGISTRY.get_sample_value('portfolio_position_count_count',
                                         {'username': client_user.username}) is None


class TestDashboardSummary:
    """Test dashboard figures"""

    def test_researcher_dashboard(self, portfolio_service, strategy_service, trade_service,
                                  db_manager, product, researcher):
        strategy_service.create(researcher, 'Alpha')
        strategy_service.create(researcher, 'Beta')
        trade_service.book_trade(researcher, product.id, TradeType.BUY, 10000, 102)

        result = portfolio_service.dashboard_summary(researcher)
        latest = db_manager.list_activity(researcher.username, limit=1)[0]

        assert result['strategies_count'] == 2
        assert result['trades_count'] == 1
        assert result['products_count'] == 0
        assert result['total_portfolio_value'] == pytest.approx(10200)
        assert result['last_activity'] == latest.created_at

    def test_products_counted_for_portfolio_managers_only(self, portfolio_service, product,
                                                          trade_service, portfolio_manager, client_user):
        trade_service.create_product(client_user, 'Client Product', 'NOTE')

        assert portfolio_service.dashboard_summary(portfolio_manager)['products_count'] == 1
        assert portfolio_service.dashboard_summary(client_user)['products_count'] == 0

    def test_last_activity_falls_back_to_last_login(self, portfolio_service, db_manager, make_user):
        user = make_user('quiet', Role.CLIENT)
        login_time = datetime(2025, 2, 2, 8, 30)
        db_manager.update_last_login(user.id, login_time)

        user = db_manager.get_user_by_id(user.id)
        assert portfolio_service.dashboard_summary(user)['last_activity'] == login_time

    def test_no_activity_no_login(self, portfolio_service, client_user):
        assert portfolio_service.dashboard_summary(client_user)['last_activity'] is None

    def test_active_sessions_exclude_expired(self, db_manager, clock, client_user, researcher):
        service = PortfolioService(db_manager, clock=clock)
        now = clock.current
        db_manager.create_session(client_user.id, 'live', now + timedelta(days=7), now=now)
        db_manager.create_session(client_user.id, 'stale', now - timedelta(hours=1), now=now)
        db_manager.create_session(researcher.id, 'elsewhere', now + timedelta(days=7), now=now)

        assert service.dashboard_summary(client_user)['active_sessions'] == 1

        clock.advance(timedelta(days=8))
        assert service.dashboard_summary(client_user)['active_sessions'] == 0
