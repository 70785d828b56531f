"""
StorageDecoder: reads Uniswap V4 pool state straight out of PoolManager storage.

Pool.State lives in ``mapping(PoolId => Pool.State) pools`` at slot 6, so the
struct for a pool starts at keccak256(poolId . 6). Word 0 of the struct is
slot0, packed (low bits first) as:

    uint160 sqrtPriceX96 | int24 tick | uint24 protocolFee | uint24 lpFee

Word 3 holds the pool's in-range liquidity (uint128).
"""

import logging

from eth_utils.crypto import keccak
from web3 import Web3

from battle_agent.models import PoolState, ReadResult

logger = logging.getLogger(__name__)

UINT256_MOD = 2**256

SQRT_PRICE_BITS = 160
TICK_BITS = 24
FEE_BITS = 24

SQRT_PRICE_MASK = (1 << SQRT_PRICE_BITS) - 1
UINT24_MASK = (1 << 24) - 1
UINT128_MASK = (1 << 128) - 1

TICK_SHIFT = SQRT_PRICE_BITS
PROTOCOL_FEE_SHIFT = TICK_SHIFT + TICK_BITS
LP_FEE_SHIFT = PROTOCOL_FEE_SHIFT + FEE_BITS

MAX_TICK = 2**23 - 1
MIN_TICK = -(2**23)


def _key_bytes(key) -> bytes:
    """Encode a mapping key as a left-padded bytes32."""
    if isinstance(key, int):
        return key.to_bytes(32, "big")
    if isinstance(key, str):
        key = bytes.fromhex(key[2:] if key.startswith("0x") else key)
    key = bytes(key)
    if len(key) > 32:
        raise ValueError(f"mapping key longer than 32 bytes: {len(key)}")
    return key.rjust(32, b"\x00")


def mapping_slot(key, base_slot: int) -> int:
    """Storage address of ``mapping[key]`` declared at ``base_slot``.

    slot = keccak256(key_bytes32 . uint256(base_slot))
    """
    return int.from_bytes(keccak(_key_bytes(key) + int(base_slot).to_bytes(32, "big")), "big")


def offset_slot(slot: int, offset: int) -> int:
    """Address of a later word of the same struct."""
    return (slot + offset) % UINT256_MOD


def to_signed_int24(raw: int) -> int:
    """Two's-complement sign recovery for a 24-bit field."""
    return raw - (1 << 24) if raw > MAX_TICK else raw


def decode_slot0(word) -> PoolState:
    """Unpack a raw slot0 word (bytes or int) into a PoolState."""
    raw = int.from_bytes(bytes(word), "big") if not isinstance(word, int) else word
    if raw < 0 or raw >= UINT256_MOD:
        raise ValueError("slot0 word out of uint256 range")

    return PoolState(
        sqrt_price_x96=raw & SQRT_PRICE_MASK,
        tick=to_signed_int24((raw >> TICK_SHIFT) & UINT24_MASK),
        protocol_fee=(raw >> PROTOCOL_FEE_SHIFT) & UINT24_MASK,
        lp_fee=(raw >> LP_FEE_SHIFT) & UINT24_MASK,
    )


class StorageDecoder:
    """Reads pool slot0 and liquidity with raw ``eth_getStorageAt`` calls."""

    def __init__(self, w3: Web3, config):
        self.w3 = w3
        self.config = config
        self.pool_manager = (
            Web3.to_checksum_address(config.POOL_MANAGER) if config.POOL_MANAGER else None
        )

    def pool_base_slot(self, pool_id) -> int:
        return mapping_slot(pool_id, self.config.POOLS_MAPPING_SLOT)

    def _read_word(self, slot: int) -> bytes:
        if self.pool_manager is None:
            raise ValueError("POOL_MANAGER is not configured")
        word = bytes(self.w3.eth.get_storage_at(self.pool_manager, slot))
        if len(word) > 32:
            raise ValueError(f"storage word is {len(word)} bytes")
        return word.rjust(32, b"\x00")

    def read_pool_state(self, pool_id) -> ReadResult[PoolState]:
        """Get pool slot0 data: sqrtPriceX96, tick, protocolFee, lpFee."""
        try:
            word = self._read_word(self.pool_base_slot(pool_id))
            return ReadResult.present(decode_slot0(word))
        except Exception as e:
            logger.debug("Failed to read pool state for %s: %s", _fmt_key(pool_id), e)
            return ReadResult.unavailable(f"pool state unavailable: {e}")

    def read_pool_liquidity(self, pool_id) -> ReadResult[int]:
        """Get current in-range liquidity for the pool."""
        try:
            slot = offset_slot(self.pool_base_slot(pool_id), self.config.LIQUIDITY_OFFSET)
            word = self._read_word(slot)
            return ReadResult.present(int.from_bytes(word, "big") & UINT128_MASK)
        except Exception as e:
            logger.debug("Failed to read pool liquidity for %s: %s", _fmt_key(pool_id), e)
            return ReadResult.unavailable(f"pool liquidity unavailable: {e}")


def _fmt_key(key) -> str:
    if isinstance(key, (bytes, bytearray)):
        return "0x" + bytes(key).hex()
    return str(key)
