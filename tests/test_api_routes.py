"""
API Tests

FastAPI TestClient against a temporary SQLite database injected through
app.dependency_overrides.
"""

import sqlite3
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_clock, get_db_manager
from api.main import app
from quant_desk.models import DEFAULT_STRATEGY_CONFIGURATION


PASSWORD = 'password123'


@pytest.fixture
def api(db_manager, clock):
    app.dependency_overrides[get_db_manager] = lambda: db_manager
    app.dependency_overrides[get_clock] = lambda: clock
    app.state.db_manager = db_manager

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.state.db_manager = None


def login(api, username, password=PASSWORD):
    response = api.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['session_token']}"}


@pytest.fixture
def researcher_headers(api, researcher):
    return login(api, researcher.username)


@pytest.fixture
def other_researcher_headers(api, other_researcher):
    return login(api, other_researcher.username)


@pytest.fixture
def pm_headers(api, portfolio_manager):
    return login(api, portfolio_manager.username)


@pytest.fixture
def client_headers(api, client_user):
    return login(api, client_user.username)


def create_strategy(api, headers, name='Momentum', **body):
    response = api.post("/api/v1/strategies", json={"name": name, **body}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestMeta:
    """Test root, health and metrics endpoints"""

    def test_root(self, api):
        assert api.get("/").json()["name"] == "Quant Desk API"

    def test_health(self, api):
        body = api.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "healthy"

    def test_strategy_health(self, api):
        assert api.get("/api/v1/strategies/health").json()["status"] == "healthy"

    def test_metrics_exposed(self, api, researcher_headers):
        create_strategy(api, researcher_headers)
        response = api.get("/metrics/")

        assert response.status_code == 200
        assert "strategy_operations_total" in response.text
        assert "http_requests_total" in response.text


class TestAuth:
    """Test registration and session authentication"""

    def test_register_and_login(self, api):
        response = api.post("/api/v1/auth/register", json={
            "username": "newbie",
            "email": "newbie@example.com",
            "name": "New User",
            "password": "longpassword",
            "role": "RESEARCHER",
        })
        assert response.status_code == 201
        assert response.json()["role"] == "RESEARCHER"

        headers = login(api, "newbie", "longpassword")
        me = api.get("/api/v1/auth/me", headers=headers).json()
        assert me["username"] == "newbie"
        assert me["last_login"] is not None

    def test_register_duplicates(self, api, researcher):
        base = {"name": "X", "password": "longpassword"}

        dup_user = api.post("/api/v1/auth/register",
                            json={**base, "username": researcher.username, "email": "fresh@example.com"})
        dup_email = api.post("/api/v1/auth/register",
                             json={**base, "username": "fresh", "email": researcher.email.upper()})

        assert dup_user.status_code == 400
        assert dup_email.status_code == 400

    def test_register_duplicate_caught_by_store(self, api, db_manager, researcher, monkeypatch):
        # both pre-checks pass, as when two registrations interleave
        monkeypatch.setattr(db_manager, 'username_exists', lambda username: False)
        monkeypatch.setattr(db_manager, 'email_exists', lambda email: False)

        response = api.post("/api/v1/auth/register", json={
            "username": researcher.username, "email": "fresh@example.com",
            "name": "X", "password": "longpassword"
        })

        assert response.status_code == 400
        assert response.json()["detail"] == "Username or email is already taken"

    def test_register_validation(self, api):
        response = api.post("/api/v1/auth/register", json={
            "username": "bad", "email": "not-an-email", "password": "longpassword"
        })
        assert response.status_code == 422

    def test_invalid_credentials(self, api, researcher):
        wrong = api.post("/api/v1/auth/login", json={"username": researcher.username, "password": "nope"})
        unknown = api.post("/api/v1/auth/login", json={"username": "ghost", "password": PASSWORD})

        assert wrong.status_code == 401
        assert unknown.status_code == 401

    def test_login_failure_recorded(self, api, db_manager, researcher):
        api.post("/api/v1/auth/login", json={"username": researcher.username, "password": "nope"})
        assert db_manager.list_activity(researcher.username)[0].event_type == 'LOGIN_FAILURE'

    def test_disabled_account(self, api, db_path, researcher):
        conn = sqlite3.connect(db_path)
        conn.execute("UPDATE users SET is_active = 0 WHERE id = ?", (researcher.id,))
        conn.commit()
        conn.close()

        response = api.post("/api/v1/auth/login", json={"username": researcher.username, "password": PASSWORD})
        assert response.status_code == 403

    def test_missing_and_invalid_token(self, api):
        assert api.get("/api/v1/auth/me").status_code == 401
        assert api.get("/api/v1/auth/me", headers={"Authorization": "Bearer bogus"}).status_code == 401
        assert api.get("/api/v1/auth/me", headers={"Authorization": "Token abc"}).status_code == 401

    def test_expired_session_is_deleted(self, api, clock, db_manager, researcher_headers):
        token = researcher_headers["Authorization"].split(" ", 1)[1]
        clock.advance(timedelta(days=8))

        response = api.get("/api/v1/auth/me", headers=researcher_headers)

        assert response.status_code == 401
        assert db_manager.get_session(token) is None

    def test_logout(self, api, researcher_headers):
        assert api.post("/api/v1/auth/logout", headers=researcher_headers).status_code == 200
        assert api.get("/api/v1/auth/me", headers=researcher_headers).status_code == 401


class TestStrategyRoutes:
    """Test strategy endpoints and status codes"""

    def test_create_with_defaults(self, api, researcher_headers):
        body = create_strategy(api, researcher_headers, tags=["trend"])

        assert body["configuration"] == DEFAULT_STRATEGY_CONFIGURATION
        assert body["is_public"] is False
        assert body["published_at"] is None
        assert body["owner_username"] == "researcher1"
        assert body["can_edit"] is True
        assert body["can_delete"] is True
        assert body["can_publish"] is True
        assert body["tags"] == ["trend"]

    def test_client_cannot_create(self, api, client_headers):
        response = api.post("/api/v1/strategies", json={"name": "Nope"}, headers=client_headers)
        assert response.status_code == 403

    def test_request_bounds_return_422(self, api, researcher_headers):
        short = api.post("/api/v1/strategies", json={"name": "A"}, headers=researcher_headers)
        long_desc = api.post("/api/v1/strategies", json={"name": "Ok", "description": "d" * 2001},
                             headers=researcher_headers)

        assert short.status_code == 422
        assert long_desc.status_code == 422

    def test_blank_name_returns_400(self, api, researcher_headers):
        response = api.post("/api/v1/strategies", json={"name": "    "}, headers=researcher_headers)
        assert response.status_code == 400

    def test_duplicate_name_returns_409(self, api, researcher_headers):
        create_strategy(api, researcher_headers, 'Alpha')
        response = api.post("/api/v1/strategies", json={"name": "ALPHA"}, headers=researcher_headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "A strategy with this name already exists"

    def test_get_status_codes(self, api, researcher_headers, client_headers, pm_headers):
        strategy = create_strategy(api, researcher_headers)
        url = f"/api/v1/strategies/{strategy['id']}"

        assert api.get("/api/v1/strategies/9999", headers=researcher_headers).status_code == 404
        assert api.get(url, headers=client_headers).status_code == 403

        pm_view = api.get(url, headers=pm_headers)
        assert pm_view.status_code == 200
        assert pm_view.json()["can_edit"] is False
        assert pm_view.json()["can_publish"] is False

    def test_update(self, api, researcher_headers, other_researcher_headers):
        strategy = create_strategy(api, researcher_headers, 'Alpha')
        url = f"/api/v1/strategies/{strategy['id']}"
        payload = {"name": "Alpha v2", "configuration": {"x": 1}, "tags": []}

        assert api.put(url, json=payload, headers=other_researcher_headers).status_code == 403

        response = api.put(url, json=payload, headers=researcher_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Alpha v2"
        assert response.json()["configuration"] == {"x": 1}

    def test_publish_lifecycle(self, api, researcher_headers, client_headers):
        strategy = create_strategy(api, researcher_headers)
        base = f"/api/v1/strategies/{strategy['id']}"

        published = api.post(f"{base}/publish", headers=researcher_headers)
        assert published.status_code == 200
        assert published.json()["is_public"] is True
        assert published.json()["can_publish"] is False

        assert api.post(f"{base}/publish", headers=researcher_headers).status_code == 400
        assert api.get(base, headers=client_headers).status_code == 200
        assert api.post(f"{base}/publish", headers=client_headers).status_code == 403

        unpublished = api.post(f"{base}/unpublish", headers=researcher_headers)
        assert unpublished.json()["published_at"] is None
        assert api.post(f"{base}/unpublish", headers=researcher_headers).status_code == 400

    def test_list_and_search(self, api, researcher_headers, client_headers, pm_headers):
        momentum = create_strategy(api, researcher_headers, 'Momentum')
        create_strategy(api, researcher_headers, 'Carry')
        api.post(f"/api/v1/strategies/{momentum['id']}/publish", headers=researcher_headers)

        client_list = api.get("/api/v1/strategies", headers=client_headers).json()
        assert [s["name"] for s in client_list["strategies"]] == ["Momentum"]
        assert client_list["strategies"][0]["can_edit"] is False

        pm_list = api.get("/api/v1/strategies", params={"search": "CAR"}, headers=pm_headers).json()
        assert pm_list["total"] == 1
        assert pm_list["strategies"][0]["name"] == "Carry"

        blank = api.get("/api/v1/strategies", params={"search": " "}, headers=researcher_headers).json()
        assert blank["total"] == 2

    def test_statistics(self, api, researcher_headers, pm_headers):
        strategy = create_strategy(api, researcher_headers)
        api.post(f"/api/v1/strategies/{strategy['id']}/publish", headers=researcher_headers)

        assert api.get("/api/v1/strategies/statistics", headers=researcher_headers).json() == {
            "total_strategies": 1, "public_strategies": 1, "private_strategies": 0
        }
        assert api.get("/api/v1/strategies/statistics", headers=pm_headers).json()["total_strategies"] == 0

    def test_delete(self, api, researcher_headers, pm_headers):
        strategy = create_strategy(api, researcher_headers)
        url = f"/api/v1/strategies/{strategy['id']}"

        assert api.delete(url, headers=pm_headers).status_code == 403
        assert api.delete(url, headers=researcher_headers).json()["message"] == "Strategy deleted successfully"
        assert api.delete(url, headers=researcher_headers).status_code == 404

    def test_requires_authentication(self, api):
        assert api.get("/api/v1/strategies").status_code == 401


class TestTradingRoutes:
    """Test products, trades, portfolio and dashboard endpoints"""

    @pytest.fixture
    def product_id(self, api, pm_headers):
        response = api.post("/api/v1/products", json={
            "name": "Autocall SPX", "product_type": "NOTE", "underlying_asset": "SPX"
        }, headers=pm_headers)
        assert response.status_code == 201
        return response.json()["id"]

    def test_products(self, api, product_id, pm_headers, client_headers):
        assert api.get(f"/api/v1/products/{product_id}", headers=client_headers).json()["name"] == "Autocall SPX"
        assert len(api.get("/api/v1/products/mine", headers=pm_headers).json()) == 1
        assert api.get("/api/v1/products/mine", headers=client_headers).json() == []
        assert api.get("/api/v1/products/999", headers=client_headers).status_code == 404

    def test_book_and_list_trades(self, api, product_id, client_headers):
        booked = api.post("/api/v1/trades/book", json={
            "product_id": product_id, "trade_type": "SELL", "notional": 10000, "entry_price": 101.5
        }, headers=client_headers)

        assert booked.status_code == 200
        assert booked.json()["status"] == "BOOKED"
        assert booked.json()["message"] == "Trade booked successfully"

        trades = api.get("/api/v1/trades", headers=client_headers).json()
        assert len(trades) == 1
        assert trades[0]["product_name"] == "Autocall SPX"
        assert trades[0]["current_price"] == 101.5
        assert trades[0]["pnl"] == 0.0

    def test_booking_validation(self, api, product_id, client_headers):
        bad_notional = api.post("/api/v1/trades/book", json={
            "product_id": product_id, "trade_type": "BUY", "notional": 0, "entry_price": 100
        }, headers=client_headers)
        bad_side = api.post("/api/v1/trades/book", json={
            "product_id": product_id, "trade_type": "HOLD", "notional": 10, "entry_price": 100
        }, headers=client_headers)
        missing_product = api.post("/api/v1/trades/book", json={
            "product_id": 999, "trade_type": "BUY", "notional": 10, "entry_price": 100
        }, headers=client_headers)

        assert bad_notional.status_code == 422
        assert bad_side.status_code == 422
        assert missing_product.status_code == 404

    def test_trade_status(self, api, product_id, client_headers, pm_headers):
        trade_id = api.post("/api/v1/trades/book", json={
            "product_id": product_id, "trade_type": "BUY", "notional": 1000, "entry_price": 100
        }, headers=client_headers).json()["trade_id"]
        url = f"/api/v1/trades/{trade_id}/status"

        assert api.put(url, params={"status": "active"}, headers=client_headers).json()["status"] == "ACTIVE"
        assert api.put(url, params={"status": "SETTLED"}, headers=client_headers).status_code == 400
        assert api.put(url, params={"status": "CLOSED"}, headers=pm_headers).status_code == 403
        assert api.get(f"/api/v1/trades/{trade_id}", headers=pm_headers).status_code == 403

    def test_portfolio_and_dashboard(self, api, product_id, client_headers):
        api.post("/api/v1/trades/book", json={
            "product_id": product_id, "trade_type": "BUY", "notional": 10000, "entry_price": 98
        }, headers=client_headers)

        portfolio = api.get("/api/v1/portfolio/summary", headers=client_headers).json()
        assert portfolio["summary"]["position_count"] == 1
        assert portfolio["summary"]["total_investment"] == pytest.approx(9800)
        assert portfolio["positions"][0]["product"]["name"] == "Autocall SPX"

        dashboard = api.get("/api/v1/dashboard/summary", headers=client_headers).json()
        assert dashboard["trades_count"] == 1
        assert dashboard["products_count"] == 0
        assert dashboard["total_portfolio_value"] == pytest.approx(9800)
        assert dashboard["last_activity"] is not None
        assert dashboard["active_sessions"] == 1
