"""
Tests for BattleArena reads and the simulate -> submit -> await write path.
"""
from unittest.mock import MagicMock

import pytest

from battle_agent.arena import ArenaClient
from battle_agent.errors import TransactionFailed
from battle_agent.models import BattleStatus
from conftest import USER, make_battle

TX_HASH = bytes.fromhex("12" * 32)


@pytest.fixture
def w3():
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.gas_price = 100_000_000
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {
        "status": 1,
        "gasUsed": 84_321,
        "blockNumber": 555,
    }
    return w3


@pytest.fixture
def account():
    account = MagicMock()
    account.address = USER
    return account


@pytest.fixture
def client(w3, account, cfg):
    return ArenaClient(w3, account, cfg)


def contract_fn(client, name):
    return getattr(client.arena.functions, name).return_value


class TestReads:
    def test_ids_by_status(self, client):
        contract_fn(client, "getBattlesByStatus").call.return_value = [3, 1]

        result = client.get_battles_by_status(BattleStatus.EXPIRED)

        assert result.value == [3, 1]
        client.arena.functions.getBattlesByStatus.assert_called_with(2)

    def test_read_failure_is_unavailable(self, client):
        contract_fn(client, "getBattleCount").call.side_effect = TimeoutError("read timed out")

        result = client.get_battle_count()

        assert not result.ok
        assert "read timed out" in result.reason

    def test_performance_uses_type_specific_method(self, client):
        contract_fn(client, "getCurrentPerformance").call.return_value = (True, False, 9, 4, USER)

        result = client.get_performance(make_battle(2))

        assert result.value.creator_score == 9
        client.arena.functions.getCurrentPerformance.assert_called_with(2)
        client.arena.functions.getCurrentFeePerformance.assert_not_called()

    def test_balance_in_ether(self, client, w3):
        w3.eth.get_balance.return_value = 2 * 10**18
        assert client.get_balance().value == 2.0


class TestWrites:
    def test_successful_resolve(self, client, w3, account, cfg):
        receipt = client.resolve_battle(4)

        assert receipt == {"tx_hash": "0x" + "12" * 32, "gas_used": 84_321, "block_number": 555}
        call = contract_fn(client, "resolveBattle")
        call.call.assert_called_once_with({"from": USER})
        tx_params = call.build_transaction.call_args.args[0]
        assert tx_params["nonce"] == 7
        assert tx_params["gas"] == cfg.WRITE_GAS_LIMIT
        w3.eth.send_raw_transaction.assert_called_once_with(
            account.sign_transaction.return_value.raw_transaction
        )
        w3.eth.wait_for_transaction_receipt.assert_called_once_with(
            TX_HASH, timeout=cfg.RECEIPT_TIMEOUT_SECONDS
        )

    def test_simulation_revert_sends_nothing(self, client, w3):
        contract_fn(client, "updateBattleStatus").call.side_effect = ValueError("BattleNotActive")

        with pytest.raises(TransactionFailed) as exc:
            client.update_battle_status(4)

        assert exc.value.reason.startswith("simulation reverted")
        assert "BattleNotActive" in exc.value.reason
        w3.eth.send_raw_transaction.assert_not_called()

    def test_reverted_receipt(self, client, w3):
        w3.eth.wait_for_transaction_receipt.return_value = {
            "status": 0,
            "gasUsed": 21_000,
            "blockNumber": 556,
        }

        with pytest.raises(TransactionFailed) as exc:
            client.resolve_battle(4)

        assert exc.value.reason == "transaction reverted"
        assert exc.value.tx_hash == "0x" + "12" * 32

    def test_receipt_timeout_keeps_hash(self, client, w3):
        w3.eth.wait_for_transaction_receipt.side_effect = TimeoutError("120s elapsed")

        with pytest.raises(TransactionFailed) as exc:
            client.resolve_battle(4)

        assert exc.value.reason.startswith("receipt not received")
        assert exc.value.tx_hash is not None

    def test_no_account(self, w3, cfg):
        client = ArenaClient(w3, None, cfg)

        assert client.address is None
        assert not client.get_balance().ok
        with pytest.raises(TransactionFailed):
            client.resolve_battle(1)
