"""
BattleArena registry access: battle reads and the two state-changing calls the
agent is allowed to make (resolveBattle, updateBattleStatus).

Every write follows simulate -> submit -> await receipt and is awaited to
completion before returning.
"""

import json
import logging
import os

from eth_utils import to_checksum_address
from web3 import Web3

from battle_agent.errors import TransactionFailed
from battle_agent.models import Battle, BattleStatus, Performance, ReadResult

logger = logging.getLogger(__name__)

ABI_DIR = os.path.join(os.path.dirname(__file__), "abi")


def _load_abi(filename: str) -> list:
    with open(os.path.join(ABI_DIR, filename)) as f:
        return json.load(f)


def connect(config) -> Web3:
    """Open an HTTP connection to the node, with a per-request timeout."""
    logger.info("Connecting to RPC: %s", config.RPC_URL)
    w3 = Web3(
        Web3.HTTPProvider(
            config.RPC_URL, request_kwargs={"timeout": config.RPC_TIMEOUT_SECONDS}
        )
    )
    if not w3.is_connected():
        raise ConnectionError(f"Cannot connect to RPC at {config.RPC_URL}")
    logger.info("Connected. Chain ID: %d", w3.eth.chain_id)
    return w3


class ArenaClient:
    """Reads battle records from BattleArena and sends settlement transactions."""

    def __init__(self, w3: Web3, account, config):
        self.w3 = w3
        self.account = account
        self.config = config

        self.arena = w3.eth.contract(
            address=to_checksum_address(config.BATTLE_ARENA_ADDRESS),
            abi=_load_abi("battle_arena.json"),
        )

    @property
    def address(self) -> str | None:
        return self.account.address if self.account is not None else None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_battle(self, battle_id: int) -> ReadResult[Battle]:
        try:
            raw = self.arena.functions.getBattle(battle_id).call()
            return ReadResult.present(Battle.from_record(battle_id, raw))
        except Exception as e:
            logger.error("Failed to get battle %s: %s", battle_id, e)
            return ReadResult.unavailable(f"getBattle failed: {e}")

    def get_battles_by_status(self, status: BattleStatus) -> ReadResult[list[int]]:
        try:
            ids = self.arena.functions.getBattlesByStatus(int(status)).call()
            return ReadResult.present([int(i) for i in ids])
        except Exception as e:
            logger.error("Failed to get battles with status %s: %s", status.name, e)
            return ReadResult.unavailable(f"getBattlesByStatus failed: {e}")

    def get_battle_count(self) -> ReadResult[int]:
        try:
            return ReadResult.present(int(self.arena.functions.getBattleCount().call()))
        except Exception as e:
            logger.error("Failed to get battle count: %s", e)
            return ReadResult.unavailable(f"getBattleCount failed: {e}")

    def is_battle_expired(self, battle_id: int) -> ReadResult[bool]:
        try:
            return ReadResult.present(bool(self.arena.functions.isBattleExpired(battle_id).call()))
        except Exception as e:
            logger.debug("isBattleExpired(%s) failed: %s", battle_id, e)
            return ReadResult.unavailable(f"isBattleExpired failed: {e}")

    def get_performance(self, battle: Battle) -> ReadResult[Performance]:
        """Live performance tuple, read with the method matching the battle type."""
        try:
            fn = getattr(self.arena.functions, battle.performance_function)
            raw = fn(battle.battle_id).call()
            return ReadResult.present(battle.parse_performance(raw))
        except Exception as e:
            logger.debug("%s(%s) failed: %s", battle.performance_function, battle.battle_id, e)
            return ReadResult.unavailable(f"{battle.performance_function} failed: {e}")

    def get_balance(self) -> ReadResult[float]:
        """Agent ETH balance."""
        if self.account is None:
            return ReadResult.unavailable("no signing account configured")
        try:
            wei = self.w3.eth.get_balance(self.account.address)
            return ReadResult.present(wei / 10**18)
        except Exception as e:
            logger.error("Failed to get balance: %s", e)
            return ReadResult.unavailable(f"get_balance failed: {e}")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def resolve_battle(self, battle_id: int) -> dict:
        """Settle an expired battle. Returns {"tx_hash", "gas_used", "block_number"}."""
        return self._send("resolveBattle", battle_id)

    def update_battle_status(self, battle_id: int) -> dict:
        """Refresh in-range time tracking for an active range battle."""
        return self._send("updateBattleStatus", battle_id)

    def _send(self, function: str, battle_id: int) -> dict:
        """Simulate, sign, send, and wait for the receipt."""
        if self.account is None:
            raise TransactionFailed(function, battle_id, "no signing account configured")

        sender = self.account.address
        call = getattr(self.arena.functions, function)(battle_id)

        try:
            call.call({"from": sender})
        except Exception as e:
            raise TransactionFailed(function, battle_id, f"simulation reverted: {e}") from e

        try:
            tx = call.build_transaction(
                {
                    "from": sender,
                    "nonce": self.w3.eth.get_transaction_count(sender),
                    "gas": self.config.WRITE_GAS_LIMIT,
                    "gasPrice": self.w3.eth.gas_price,
                }
            )
            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise TransactionFailed(function, battle_id, f"submission failed: {e}") from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info("%s(%d) submitted: %s", function, battle_id, tx_hex)

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.config.RECEIPT_TIMEOUT_SECONDS
            )
        except Exception as e:
            raise TransactionFailed(
                function, battle_id, f"receipt not received: {e}", tx_hash=tx_hex
            ) from e

        if receipt["status"] != 1:
            logger.error("Transaction reverted: tx=%s", tx_hex)
            raise TransactionFailed(function, battle_id, "transaction reverted", tx_hash=tx_hex)

        return {
            "tx_hash": tx_hex,
            "gas_used": int(receipt["gasUsed"]),
            "block_number": int(receipt["blockNumber"]),
        }
