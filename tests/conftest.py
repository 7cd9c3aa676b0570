"""
Shared pytest fixtures

Each test gets a fresh SQLite database in tmp_path, built with the same
DatabaseInitializer used by init_db.py, and a deterministic clock.
"""

import os
import sys
from datetime import datetime, timedelta

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from init_db import DatabaseInitializer
from quant_desk.activity_log import ActivityLogger
from quant_desk.auth_manager import AuthManager
from quant_desk.db_manager_sqlite import SQLiteDatabaseManager
from quant_desk.models import Role
from quant_desk.strategy_service import StrategyService
from quant_desk.trade_service import TradeService


class FakeClock:
    """Returns a strictly increasing timestamp on every call"""

    def __init__(self, start: datetime = datetime(2025, 1, 6, 9, 0, 0), step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + self.step
        return now

    def advance(self, delta: timedelta):
        self.current = self.current + delta


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Lowest bcrypt cost so password hashing does not dominate test time"""
    monkeypatch.setattr(AuthManager, 'BCRYPT_ROUNDS', 4)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / 'quant_desk_test.db')
    DatabaseInitializer(db_path=path).initialize()
    return path


@pytest.fixture
def db_manager(db_path):
    return SQLiteDatabaseManager(db_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_user(db_manager):
    """Factory: make_user('alice', Role.RESEARCHER, password='secret123')"""

    def _make(username: str, role: Role, password: str = 'password123', name: str = None):
        return db_manager.create_user(
            username,
            f"{username}@example.com",
            name or username.title(),
            AuthManager.hash_password(password),
            role
        )

    return _make


@pytest.fixture
def researcher(make_user):
    return make_user('researcher1', Role.RESEARCHER)


@pytest.fixture
def other_researcher(make_user):
    return make_user('researcher2', Role.RESEARCHER)


@pytest.fixture
def portfolio_manager(make_user):
    return make_user('pm1', Role.PORTFOLIO_MANAGER)


@pytest.fixture
def client_user(make_user):
    return make_user('client1', Role.CLIENT)


@pytest.fixture
def activity_logger(db_manager, clock):
    return ActivityLogger(db_manager, clock=clock)


@pytest.fixture
def strategy_service(db_manager, activity_logger, clock):
    return StrategyService(db_manager, activity_logger, clock=clock)


@pytest.fixture
def trade_service(db_manager, activity_logger, clock):
    return TradeService(db_manager, activity_logger, clock=clock)
