"""Integration tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from tests.helpers import ALICE, BOB, TOKEN0, TOKEN1, make_engine
from twamm.api.endpoints import get_engine
from twamm.api.main import app
from twamm.interfaces import ManualClock, TransferJournal


@pytest.fixture
def api_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def api_engine(api_clock):
    return make_engine(api_clock, transfers=TransferJournal())


@pytest.fixture
def client(api_engine):
    """Test client serving an engine driven by a manual clock."""
    app.dependency_overrides[get_engine] = lambda: api_engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded_client(client):
    response = client.post(
        "/liquidity/initial", json={"provider": ALICE, "amount0": "1000", "amount1": "1000"}
    )
    assert response.status_code == 200
    return client


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestLiquidityEndpoints:
    def test_initial_liquidity(self, client):
        response = client.post(
            "/liquidity/initial", json={"provider": ALICE, "amount0": "1000", "amount1": "4000"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["shares"] == "2000"
        assert data["transfers"] == [
            {"direction": "in", "token": TOKEN0, "account": ALICE, "amount": "1000"},
            {"direction": "in", "token": TOKEN1, "account": ALICE, "amount": "4000"},
        ]

    def test_provide_and_remove(self, seeded_client):
        provided = seeded_client.post("/liquidity/provide", json={"provider": BOB, "shares": "100"})
        assert provided.status_code == 200
        assert (provided.json()["amount0"], provided.json()["amount1"]) == ("100", "100")

        removed = seeded_client.post("/liquidity/remove", json={"provider": BOB, "shares": "100"})
        assert removed.status_code == 200
        assert [t["direction"] for t in removed.json()["transfers"]] == ["out", "out"]

    def test_initial_twice_is_bad_request(self, seeded_client):
        response = seeded_client.post(
            "/liquidity/initial", json={"provider": BOB, "amount0": "1", "amount1": "1"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "LiquidityError"


class TestSwapEndpoint:
    def test_swap(self, seeded_client):
        response = seeded_client.post(
            "/swap", json={"trader": BOB, "sellToken": TOKEN0, "amountIn": "100"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["buyToken"] == TOKEN1
        assert data["amountOut"] == "90"
        assert len(data["transfers"]) == 2

    def test_invalid_amount_is_unprocessable(self, seeded_client):
        """Schema violations are rejected by pydantic."""
        response = seeded_client.post(
            "/swap", json={"trader": BOB, "sellToken": TOKEN0, "amountIn": "-5"}
        )
        assert response.status_code == 422

    def test_failed_operation_records_no_transfers(self, seeded_client):
        response = seeded_client.post(
            "/swap", json={"trader": BOB, "sellToken": TOKEN0, "amountIn": "1"}
        )
        assert response.status_code == 400
        follow_up = seeded_client.post(
            "/swap", json={"trader": BOB, "sellToken": TOKEN0, "amountIn": "100"}
        )
        assert len(follow_up.json()["transfers"]) == 2


class TestOrderEndpoints:
    """Long-term order lifecycle over HTTP."""

    def _create(self, client, amount="100", intervals=0, owner=BOB):
        return client.post(
            "/orders",
            json={"owner": owner, "sellToken": TOKEN0, "amount": amount, "intervals": intervals},
        )

    def test_create_and_get(self, seeded_client):
        created = self._create(seeded_client)
        assert created.status_code == 200
        data = created.json()
        assert data["id"] == 0
        assert data["saleRate"] == "10"
        assert data["expiry"] == 10
        assert data["status"] == "active"
        assert data["transfers"] == [
            {"direction": "in", "token": TOKEN0, "account": BOB, "amount": "100"}
        ]

        fetched = seeded_client.get("/orders/0")
        assert fetched.status_code == 200
        assert fetched.json()["transfers"] == []

    def test_withdraw_after_expiry(self, seeded_client, api_clock):
        self._create(seeded_client)
        api_clock.set(10)

        executed = seeded_client.post("/virtual-orders/execute")
        assert executed.status_code == 200
        assert (executed.json()["reserve0"], executed.json()["reserve1"]) == ("1100", "910")

        response = seeded_client.post("/orders/0/withdraw", json={"caller": BOB})
        assert response.status_code == 200
        assert response.json()["proceeds"] == "90"

        again = seeded_client.post("/orders/0/withdraw", json={"caller": BOB})
        assert again.status_code == 400
        assert again.json()["error"] == "NoProceedsError"

    def test_cancel(self, seeded_client, api_clock):
        self._create(seeded_client, intervals=1)
        api_clock.set(10)
        response = seeded_client.post("/orders/0/cancel", json={"caller": BOB})
        assert response.status_code == 200
        data = response.json()
        assert (data["unsold"], data["purchased"]) == ("50", "47")
        assert seeded_client.get("/orders/0").json()["status"] == "settled"

    def test_cancel_by_other_is_forbidden(self, seeded_client):
        self._create(seeded_client)
        response = seeded_client.post("/orders/0/cancel", json={"caller": ALICE})
        assert response.status_code == 403

    def test_unknown_order_is_not_found(self, seeded_client):
        assert seeded_client.get("/orders/9").status_code == 404
        response = seeded_client.post("/orders/9/withdraw", json={"caller": BOB})
        assert response.status_code == 404

    def test_order_before_liquidity_is_bad_request(self, client):
        response = self._create(client)
        assert response.status_code == 400


class TestStateEndpoint:
    def test_state(self, seeded_client, api_clock):
        api_clock.set(4)
        data = seeded_client.get("/state").json()
        assert data["token0"] == TOKEN0
        assert data["totalShares"] == "1000"
        assert data["currentTime"] == 4
        assert data["lastVirtualOrderTime"] == 0
        assert len(data["pools"]) == 2

    def test_state_projects_open_orders(self, seeded_client, api_clock):
        """Reserves stay at the last settlement; the projection runs to the clock."""
        seeded_client.post(
            "/orders",
            json={"owner": BOB, "sellToken": TOKEN0, "amount": "100", "intervals": 0},
        )
        api_clock.set(10)

        data = seeded_client.get("/state").json()

        assert (data["reserve0"], data["reserve1"]) == ("1000", "1000")
        assert (data["projectedReserve0"], data["projectedReserve1"]) == ("1100", "910")
        assert data["lastVirtualOrderTime"] == 0
