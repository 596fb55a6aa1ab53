"""Tests for the HTTP layer: wire shapes, Either envelopes and error mapping.

Components on app.state are mocks, so these tests exercise only routing
and serialization.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import BASE_TIME, make_movement, make_tx
from explorer_api.api.app import create_api_app
from explorer_api.config import AppSettings
from explorer_api.exceptions import (
    DataConsistencyError,
    InvalidRequestError,
    NotFoundError,
    UpstreamUnavailableError,
)
from explorer_api.health.status import HealthStatus
from explorer_api.history.assembler import assemble
from explorer_api.models import (
    AddressSummary,
    Amount,
    DelegationEvent,
    PoolRef,
    RewardProjection,
    StakeAccount,
    TxSummary,
    Utxo,
)

DELEGATION = DelegationEvent(
    tx_hash="aa" * 32,
    epoch=210,
    slot=4_320_000,
    time=BASE_TIME,
    pool_hash="pool1",
)

POOL = PoolRef(
    pool_hash_id=1,
    pool_hash="pool1",
    pledge=Amount(10**15),
    margin=Decimal("0.025"),
    fixed_cost=Amount(340_000_000),
    metadata_url="https://pool.one/meta.json",
)


@pytest.fixture
def app(mock_settings: AppSettings):
    """App with mocked engine, reconciler, health cache and submit client."""
    app = create_api_app()
    app.state.settings = mock_settings
    app.state.engine = AsyncMock()
    app.state.reconciler = AsyncMock()
    app.state.health = AsyncMock()
    app.state.submit_client = AsyncMock()
    return app


@pytest.fixture
def app_state(app):
    return app.state


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


class TestLegacyRoutes:
    """Tests for /api/... explorer routes."""

    def test_address_summary_uses_coin_objects(self, app_state, client: TestClient) -> None:
        tx = make_tx(1)
        tx_list = assemble(
            [tx],
            [make_movement(1, "Z", 2_000_000)],
            [make_movement(1, "A", 1_500_000, index=0), make_movement(1, "Z", 400_000, index=1)],
        )
        app_state.engine.summarize.return_value = AddressSummary(
            addresses=["A"], tx_count=1, balance=Amount(1_500_000), tx_list=tx_list
        )

        response = client.get("/api/addresses/summary/A")

        assert response.status_code == 200
        body = response.json()["Right"]
        assert body["caAddress"] == "A"
        assert body["caType"] == "CPubKeyAddress"
        assert body["caTxNum"] == 1
        assert body["caBalance"] == {"getCoin": "1500000"}
        entry = body["caTxList"][0]
        assert entry["ctbId"] == tx.hash
        assert entry["ctbTimeIssued"] == int(BASE_TIME.timestamp())
        assert entry["ctbOutputs"][0] == ["A", {"getCoin": "1500000"}]
        assert entry["ctbInputSum"] == {"getCoin": "2000000"}
        assert entry["fee"] == {"getCoin": "100000"}
        app_state.engine.summarize.assert_awaited_once_with(["A"])

    def test_fee_omitted_when_unknown(self, app_state, client: TestClient) -> None:
        app_state.engine.summarize.return_value = AddressSummary(
            addresses=["A"],
            tx_count=1,
            balance=Amount(5),
            tx_list=assemble([make_tx(1)], [], [make_movement(1, "A", 5)]),
        )

        entry = client.get("/api/addresses/summary/A").json()["Right"]["caTxList"][0]

        assert "fee" not in entry

    def test_bulk_summary(self, app_state, client: TestClient) -> None:
        app_state.engine.summarize.return_value = AddressSummary(
            addresses=["A", "B"], tx_count=0, balance=Amount.ZERO
        )

        response = client.post("/api/bulk/addresses/summary", json=["A", "B"])

        body = response.json()["Right"]
        assert body["caAddresses"] == ["A", "B"]
        assert body["caBalance"] == {"getCoin": "0"}
        assert body["caTxList"] == []

    def test_bulk_summary_invalid_request_is_left(self, app_state, client: TestClient) -> None:
        app_state.engine.summarize.side_effect = InvalidRequestError(
            "Addresses request length should be (0, 50]"
        )

        response = client.post("/api/bulk/addresses/summary", json=[])

        assert response.status_code == 200
        assert response.json() == {"Left": "Addresses request length should be (0, 50]"}

    def test_bulk_utxo(self, app_state, client: TestClient) -> None:
        app_state.engine.unspent_outputs.return_value = [
            Utxo(tx_hash="aa" * 32, index=1, address="A", amount=Amount(42), block_height=7)
        ]

        response = client.post("/api/bulk/addresses/utxo", json=["A"])

        assert response.json() == {
            "Right": [
                {
                    "tag": "CUtxo",
                    "cuId": "aa" * 32,
                    "cuOutIndex": 1,
                    "cuAddress": "A",
                    "cuCoins": {"getCoin": "42"},
                }
            ]
        }

    def test_tx_summary(self, app_state, client: TestClient) -> None:
        app_state.engine.transaction_summary.return_value = TxSummary(
            hash="cc" * 32,
            time=BASE_TIME,
            block_height=100,
            block_hash="dd" * 32,
            epoch=5,
            slot=12,
            inputs=[make_movement(1, "A", 10)],
            outputs=[make_movement(1, "B", 9)],
            total_input=Amount(10),
            total_output=Amount(9),
            fee=Amount(1),
        )

        body = client.get(f"/api/txs/summary/{'cc' * 32}").json()["Right"]

        assert body["ctsId"] == "cc" * 32
        assert body["ctsBlockEpoch"] == 5
        assert body["ctsBlockSlot"] == 12
        assert body["ctsFees"] == {"getCoin": "1"}
        assert body["ctsInputs"] == [["A", {"getCoin": "10"}]]

    def test_unknown_tx_is_left(self, app_state, client: TestClient) -> None:
        app_state.engine.transaction_summary.side_effect = NotFoundError("missing")

        response = client.get("/api/txs/summary/ff")

        assert response.status_code == 200
        assert response.json() == {"Left": "Invalid transaction id!"}

    def test_raw_tx(self, app_state, client: TestClient) -> None:
        app_state.engine.raw_transaction.return_value = "83a40081825820"

        response = client.get("/api/txs/raw/" + "aa" * 32)

        assert response.json() == {"Right": "83a40081825820"}
        app_state.engine.raw_transaction.assert_awaited_once_with("aa" * 32)

    def test_unknown_raw_tx_is_left(self, app_state, client: TestClient) -> None:
        app_state.engine.raw_transaction.side_effect = NotFoundError("missing")

        response = client.get("/api/txs/raw/ff")

        assert response.status_code == 200
        assert response.json() == {"Left": "Invalid transaction id!"}

    def test_staking_history_marks_delegations(self, app_state, client: TestClient) -> None:
        app_state.reconciler.delegation_events.return_value = [DELEGATION]

        body = client.get("/api/account/stakingHistory/stake1").json()

        assert body == [
            {
                "epochNo": 210,
                "slotNo": 4_320_000,
                "time": BASE_TIME.isoformat(),
                "poolHash": "pool1",
                "txHash": "aa" * 32,
                "type": "Stake delegation",
            }
        ]
        app_state.reconciler.delegation_events.assert_awaited_once_with("stake1")

    def test_stake_pools_keyed_by_hash(self, app_state, client: TestClient) -> None:
        app_state.reconciler.stake_pools.return_value = [POOL]

        body = client.get("/api/v2/stakePools").json()

        assert body == {
            "pool1": {
                "pledge": "1000000000000000",
                "margin": "0.025",
                "fixedCost": "340000000",
                "url": "https://pool.one/meta.json",
            }
        }

    def test_stake_pools_list(self, app_state, client: TestClient) -> None:
        app_state.reconciler.stake_pools.return_value = [POOL]

        body = client.get("/api/stakePools").json()

        assert [item["poolHash"] for item in body] == ["pool1"]

    def test_reward_schedule(self, app_state, client: TestClient) -> None:
        app_state.reconciler.account_info.return_value = StakeAccount(
            staking_address="stake1",
            current_epoch=212,
            account_internal_id=3,
            next_reward_schedule=[
                RewardProjection(209, "23.08.2020 21:44 UTC", "pool1"),
                RewardProjection(210, "28.08.2020 21:44 UTC", "pool1"),
            ],
        )

        body = client.get("/api/account/rewardSchedule/stake1").json()

        assert body[0] == {
            "forEpoch": 209,
            "rewardDate": "23.08.2020 21:44 UTC",
            "poolHash": "pool1",
        }
        assert len(body) == 2


class TestAccountInfo:
    """Tests for the account info payload."""

    def test_delegated_account(self, app_state, client: TestClient) -> None:
        app_state.reconciler.account_info.return_value = StakeAccount(
            staking_address="stake1",
            current_epoch=212,
            account_internal_id=3,
            current_delegation_target=POOL,
            has_active_key=True,
            total_rewards=Amount(2**70),
            next_reward_schedule=[RewardProjection(209, "23.08.2020 21:44 UTC", "pool1")],
        )

        body = client.get("/api/v2/account/info/stake1").json()

        assert body["currentEpoch"] == 212
        assert body["delegation"]["poolHash"] == "pool1"
        assert body["hasStakingKey"] is True
        assert body["rewards"] == str(2**70)
        assert body["nextRewardDetails"]["forEpoch"] == 209

    def test_unknown_account_renders_empty_objects(self, app_state, client: TestClient) -> None:
        app_state.reconciler.account_info.return_value = StakeAccount(
            staking_address="stake1", current_epoch=212
        )

        body = client.get("/api/account/info/stake1").json()

        assert body == {
            "currentEpoch": 212,
            "delegation": {},
            "hasStakingKey": False,
            "rewards": "0",
            "nextRewardDetails": {},
            "rewardSchedule": [],
        }


class TestV2Routes:
    """Tests for /api/v2/... routes."""

    def test_healthcheck_reports_version(self, client: TestClient) -> None:
        assert client.get("/api/v2/healthcheck").json() == {"version": "1.0.0"}

    def test_response_carries_request_id(self, client: TestClient) -> None:
        first = client.get("/api/v2/healthcheck")
        second = client.get("/api/v2/healthcheck")

        assert len(first.headers["X-Request-Id"]) == 12
        assert first.headers["X-Request-Id"] != second.headers["X-Request-Id"]

    def test_health_status(self, app_state, client: TestClient) -> None:
        app_state.health.snapshot.return_value = HealthStatus(
            healthy=True, db_best_block=10, can_submit_tx=True, checked_at=1.0
        )

        body = client.get("/api/v2/healthStatus").json()

        assert body["healthy"] is True
        assert body["db_best_block"] == 10

    def test_best_block(self, app_state, client: TestClient) -> None:
        app_state.engine.best_block.return_value = 4321

        assert client.get("/api/v2/bestBlock").json() == {"Right": {"bestBlock": 4321}}

    def test_filter_used(self, app_state, client: TestClient) -> None:
        app_state.engine.filter_used_addresses.return_value = ["A"]

        response = client.post("/api/v2/addresses/filterUsed", json={"addresses": ["A", "B"]})

        assert response.json() == ["A"]
        app_state.engine.filter_used_addresses.assert_awaited_once_with(["A", "B"])

    def test_utxo_sum(self, app_state, client: TestClient) -> None:
        app_state.engine.unspent_sum.return_value = Amount(2**64)

        body = client.post("/api/v2/txs/utxoSumForAddresses", json={"addresses": ["A"]}).json()

        assert body == {"sum": str(2**64)}

    def test_utxo_sum_empty(self, app_state, client: TestClient) -> None:
        app_state.engine.unspent_sum.return_value = None

        body = client.post("/api/v2/txs/utxoSumForAddresses", json={"addresses": ["A"]}).json()

        assert body == {"sum": None}

    def test_utxo_for_addresses(self, app_state, client: TestClient) -> None:
        app_state.engine.unspent_outputs.return_value = [
            Utxo(tx_hash="aa" * 32, index=0, address="A", amount=Amount(1), block_height=3)
        ]

        body = client.post("/api/v2/txs/utxoForAddresses", json={"addresses": ["A"]}).json()

        assert body == [
            {"tx_hash": "aa" * 32, "tx_index": 0, "receiver": "A", "amount": "1", "block_num": 3}
        ]

    def test_history(self, app_state, client: TestClient) -> None:
        tx = make_tx(1, minute=5)
        app_state.engine.history.return_value = assemble(
            [tx],
            [make_movement(1, "A", 10, originating_tx_hash="ee" * 32)],
            [make_movement(1, "B", 8)],
            best_block_height=900,
        )

        response = client.post(
            "/api/v2/txs/history",
            json={"addresses": ["A"], "dateFrom": "2020-09-01T12:00:00Z", "limit": 5},
        )

        [entry] = response.json()
        assert entry["hash"] == tx.hash
        assert entry["inputs"][0]["txHash"] == "ee" * 32
        assert entry["outputs"] == [{"address": "B", "amount": "8"}]
        assert entry["fee"] == "2"
        assert entry["best_block_num"] == 900
        assert entry["tx_state"] == "Successful"
        assert entry["last_update"] == tx.time.isoformat()
        app_state.engine.history.assert_awaited_once_with(["A"], "2020-09-01T12:00:00Z", 5)

    def test_delegation_history_is_capped(self, app_state, client: TestClient) -> None:
        app_state.reconciler.delegation_events.return_value = [DELEGATION]

        body = client.post(
            "/api/v2/account/delegationHistory", json={"account": "stake1"}
        ).json()

        assert body[0]["poolHash"] == "pool1"
        assert "type" not in body[0]
        app_state.reconciler.delegation_events.assert_awaited_once_with("stake1", limit=20)

    def test_delegation_history_without_account_is_400(
        self, app_state, client: TestClient
    ) -> None:
        app_state.reconciler.delegation_events.side_effect = InvalidRequestError(
            "Account is empty."
        )

        response = client.post("/api/v2/account/delegationHistory", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "Account is empty."
        app_state.reconciler.delegation_events.assert_awaited_once_with("", limit=20)

    def test_signed_tx(self, app_state, client: TestClient) -> None:
        response = client.post("/api/v2/txs/signed", json={"signedTx": "gw=="})

        assert response.json() == "Transaction sent successfully!"
        app_state.submit_client.submit.assert_awaited_once_with("gw==")


class TestErrorMapping:
    """Tests for mapping core errors onto HTTP statuses."""

    def test_invalid_request_is_400(self, app_state, client: TestClient) -> None:
        app_state.engine.history.side_effect = InvalidRequestError(
            "DateFrom should be a valid datetime"
        )

        response = client.post("/api/v2/txs/history", json={"addresses": ["A"]})

        assert response.status_code == 400
        assert response.json() == {
            "code": "BadRequest",
            "message": "DateFrom should be a valid datetime",
        }

    def test_upstream_failure_is_503(self, app_state, client: TestClient) -> None:
        app_state.submit_client.submit.side_effect = UpstreamUnavailableError("node down")

        response = client.post("/api/v2/txs/signed", json={"signedTx": "gw=="})

        assert response.status_code == 503
        assert response.json()["code"] == "ServiceUnavailable"

    def test_data_inconsistency_hides_details(self, app_state, client: TestClient) -> None:
        app_state.engine.summarize.side_effect = DataConsistencyError("row 17 is broken")

        response = client.get("/api/addresses/summary/A")

        assert response.status_code == 500
        assert response.json() == {"code": "InternalServerError", "message": "Internal error"}

    def test_malformed_json_body_treated_as_missing(self, app_state, client: TestClient) -> None:
        app_state.engine.filter_used_addresses.side_effect = InvalidRequestError(
            "Addresses request length should be (0, 50]"
        )

        response = client.post(
            "/api/v2/addresses/filterUsed",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        app_state.engine.filter_used_addresses.assert_awaited_once_with(None)
