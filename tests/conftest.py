"""Shared fakes: an in-memory arena, a storage reader, and battle builders."""

from types import SimpleNamespace

import pytest

from battle_agent import config as live_config
from battle_agent.errors import TransactionFailed
from battle_agent.models import (
    ZERO_ADDRESS,
    BattleStatus,
    BattleType,
    FeeBattle,
    PoolState,
    RangeBattle,
    ReadResult,
)

CREATOR = "0x1111111111111111111111111111111111111111"
OPPONENT = "0x2222222222222222222222222222222222222222"
USER = "0x3333333333333333333333333333333333333333"
POOL_ID = bytes.fromhex("ab" * 32)

NOW = 1_700_000_000


def make_config(**overrides):
    values = {k: getattr(live_config, k) for k in dir(live_config) if k.isupper()}
    values.update(
        POLL_INTERVAL_SECONDS=0.05,
        MONITOR_WORKERS=4,
        JOURNAL_PATH=None,
        BATTLE_ARENA_ADDRESS="0x4444444444444444444444444444444444444444",
        POOL_MANAGER="0x000000000004444c5dc75cB358380D2e3dE08A90",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_battle(
    battle_id,
    battle_type=BattleType.RANGE,
    status=BattleStatus.ACTIVE,
    opponent=OPPONENT,
    winner=ZERO_ADDRESS,
    start_time=NOW - 600,
    duration=3600,
    creator_ticks=(-100, 100),
    opponent_ticks=(200, 400),
    **extra,
):
    fields = dict(
        battle_id=battle_id,
        creator=CREATOR,
        opponent=opponent,
        winner=winner,
        creator_dex=0,
        opponent_dex=1,
        creator_token_id=10 + battle_id,
        opponent_token_id=20 + battle_id,
        creator_value_usd=1000,
        opponent_value_usd=1200,
        status=status,
        pool_id=POOL_ID,
        token0="0x5555555555555555555555555555555555555555",
        token1="0x6666666666666666666666666666666666666666",
        creator_tick_lower=creator_ticks[0],
        creator_tick_upper=creator_ticks[1],
        opponent_tick_lower=opponent_ticks[0],
        opponent_tick_upper=opponent_ticks[1],
        start_time=start_time,
        duration=duration,
        last_update_time=start_time,
    )
    fields.update(extra)
    if battle_type == BattleType.RANGE:
        return RangeBattle(**fields)
    return FeeBattle(**fields)


class FakeArena:
    """In-memory BattleArena with the same surface as ArenaClient."""

    address = "0x7777777777777777777777777777777777777777"

    def __init__(self):
        self.battles = {}
        self.by_status = {status: [] for status in BattleStatus}
        self.performance = {}  # battle id -> raw performance tuple
        self.expired = {}  # battle id -> bool
        self.raise_ids = set()
        self.failing_statuses = set()
        self.write_failures = {}  # battle id -> reason
        self.sent = []

    def add(self, battle, listed_as=None, performance=None):
        self.battles[battle.battle_id] = battle
        self.by_status[listed_as or battle.status].append(battle.battle_id)
        if performance is not None:
            self.performance[battle.battle_id] = performance
        return battle

    def get_battle(self, battle_id):
        if battle_id in self.raise_ids:
            raise RuntimeError(f"node exploded reading battle {battle_id}")
        if battle_id not in self.battles:
            return ReadResult.unavailable("getBattle failed: unknown battle")
        return ReadResult.present(self.battles[battle_id])

    def get_battles_by_status(self, status):
        if status in self.failing_statuses:
            return ReadResult.unavailable("getBattlesByStatus failed: timeout")
        return ReadResult.present(list(self.by_status[status]))

    def get_battle_count(self):
        return ReadResult.present(len(self.battles))

    def is_battle_expired(self, battle_id):
        if battle_id not in self.expired:
            return ReadResult.unavailable("isBattleExpired failed: timeout")
        return ReadResult.present(self.expired[battle_id])

    def get_performance(self, battle):
        raw = self.performance.get(battle.battle_id)
        if raw is None:
            return ReadResult.unavailable(f"{battle.performance_function} failed: reverted")
        return ReadResult.present(battle.parse_performance(raw))

    def get_balance(self):
        return ReadResult.present(1.5)

    def resolve_battle(self, battle_id):
        return self._send("resolveBattle", battle_id)

    def update_battle_status(self, battle_id):
        return self._send("updateBattleStatus", battle_id)

    def _send(self, function, battle_id):
        self.sent.append((function, battle_id))
        if battle_id in self.write_failures:
            raise TransactionFailed(function, battle_id, self.write_failures[battle_id])
        return {
            "tx_hash": "0x" + f"{battle_id:064x}",
            "gas_used": 85_000,
            "block_number": 1000 + len(self.sent),
        }


class FakeDecoder:
    """Storage reader returning canned pool states."""

    def __init__(self, states=None):
        self.states = dict(states or {})
        self.reads = []

    def read_pool_state(self, pool_id):
        self.reads.append(pool_id)
        if pool_id not in self.states:
            return ReadResult.unavailable("pool state unavailable: POOL_MANAGER is not configured")
        return ReadResult.present(self.states[pool_id])

    def read_pool_liquidity(self, pool_id):
        return ReadResult.unavailable("not modelled")


def pool_at(tick):
    return PoolState(sqrt_price_x96=2**96, tick=tick, protocol_fee=0, lp_fee=3000)


@pytest.fixture
def cfg():
    return make_config()


@pytest.fixture
def arena():
    return FakeArena()


@pytest.fixture
def decoder():
    return FakeDecoder({POOL_ID: pool_at(0)})
