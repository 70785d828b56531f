"""
Typed records shared by the analyzer, the strategy engine and the
cross-chain planner.

Battle records come in two shapes (range and fee battles). Both are decoded
into a ``Battle`` subclass chosen by the on-chain type discriminant, so the
rest of the agent only ever talks to the common interface.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, ClassVar, Generic, TypeVar

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Contract enums
# ---------------------------------------------------------------------------


class BattleStatus(IntEnum):
    PENDING = 0
    ACTIVE = 1
    EXPIRED = 2
    RESOLVED = 3


class BattleType(IntEnum):
    RANGE = 0
    FEE = 1


class DexType(IntEnum):
    UNISWAP_V4 = 0
    CAMELOT_V3 = 1


def dex_name(value: int) -> str:
    try:
        return DexType(value).name
    except ValueError:
        return "UNKNOWN"


# ---------------------------------------------------------------------------
# Read results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of a remote read: either a value or the reason it is missing."""

    value: T | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def present(cls, value: T) -> "ReadResult[T]":
        return cls(value=value)

    @classmethod
    def unavailable(cls, reason: str) -> "ReadResult[T]":
        return cls(reason=reason or "unavailable")

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


# ---------------------------------------------------------------------------
# Pool / position state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolState:
    sqrt_price_x96: int
    tick: int
    protocol_fee: int
    lp_fee: int


@dataclass(frozen=True)
class PositionAnalysis:
    in_range: bool
    tick_distance: float
    range_width: int
    position_in_range: float


# ---------------------------------------------------------------------------
# Battles
# ---------------------------------------------------------------------------

# Component order of the BattleArena ``getBattle`` struct.
BATTLE_STRUCT_FIELDS = (
    "creator",
    "opponent",
    "winner",
    "creatorDex",
    "opponentDex",
    "creatorTokenId",
    "opponentTokenId",
    "creatorValueUSD",
    "opponentValueUSD",
    "battleType",
    "status",
    "poolId",
    "token0",
    "token1",
    "creatorTickLower",
    "creatorTickUpper",
    "opponentTickLower",
    "opponentTickUpper",
    "startTime",
    "duration",
    "creatorInRangeTime",
    "opponentInRangeTime",
    "lastUpdateTime",
)


@dataclass(frozen=True)
class Performance:
    """Live scoring tuple for a battle with both participants."""

    creator_score: int
    opponent_score: int
    leader: str
    creator_in_range: bool | None = None
    opponent_in_range: bool | None = None


@dataclass(frozen=True)
class Battle:
    battle_id: int
    creator: str
    opponent: str
    winner: str
    creator_dex: int
    opponent_dex: int
    creator_token_id: int
    opponent_token_id: int
    creator_value_usd: int
    opponent_value_usd: int
    status: BattleStatus
    pool_id: bytes
    token0: str
    token1: str
    creator_tick_lower: int
    creator_tick_upper: int
    opponent_tick_lower: int
    opponent_tick_upper: int
    start_time: int
    duration: int
    last_update_time: int

    battle_type: ClassVar[BattleType]
    performance_function: ClassVar[str]
    score_unit: ClassVar[str]

    @property
    def has_opponent(self) -> bool:
        return self.opponent.lower() != ZERO_ADDRESS

    @property
    def is_resolved(self) -> bool:
        return self.status == BattleStatus.RESOLVED

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    def time_remaining(self, now: float | None = None) -> int:
        """Seconds left in the battle.

        Expired and resolved battles have none left; a battle that has not
        started yet still has its whole duration ahead of it.
        """
        if self.status >= BattleStatus.EXPIRED:
            return 0
        if self.start_time == 0:
            return self.duration
        now = int(time.time() if now is None else now)
        return max(0, self.end_time - now)

    def parse_performance(self, raw) -> Performance:
        raise NotImplementedError

    @staticmethod
    def from_record(battle_id: int, record) -> "Battle":
        """Build the right Battle subclass from a ``getBattle`` result."""
        if isinstance(record, Mapping):
            data = dict(record)
        else:
            data = dict(zip(BATTLE_STRUCT_FIELDS, record))

        battle_type = BattleType(int(data["battleType"]))
        common = dict(
            battle_id=int(battle_id),
            creator=data["creator"],
            opponent=data["opponent"],
            winner=data["winner"],
            creator_dex=int(data["creatorDex"]),
            opponent_dex=int(data["opponentDex"]),
            creator_token_id=int(data["creatorTokenId"]),
            opponent_token_id=int(data["opponentTokenId"]),
            creator_value_usd=int(data["creatorValueUSD"]),
            opponent_value_usd=int(data["opponentValueUSD"]),
            status=BattleStatus(int(data["status"])),
            pool_id=bytes(data["poolId"]),
            token0=data["token0"],
            token1=data["token1"],
            creator_tick_lower=int(data["creatorTickLower"]),
            creator_tick_upper=int(data["creatorTickUpper"]),
            opponent_tick_lower=int(data["opponentTickLower"]),
            opponent_tick_upper=int(data["opponentTickUpper"]),
            start_time=int(data["startTime"]),
            duration=int(data["duration"]),
            last_update_time=int(data["lastUpdateTime"]),
        )
        if battle_type == BattleType.RANGE:
            return RangeBattle(
                **common,
                creator_in_range_time=int(data.get("creatorInRangeTime", 0)),
                opponent_in_range_time=int(data.get("opponentInRangeTime", 0)),
            )
        return FeeBattle(**common)


@dataclass(frozen=True)
class RangeBattle(Battle):
    creator_in_range_time: int = 0
    opponent_in_range_time: int = 0

    battle_type: ClassVar[BattleType] = BattleType.RANGE
    performance_function: ClassVar[str] = "getCurrentPerformance"
    score_unit: ClassVar[str] = "s in-range time"

    def parse_performance(self, raw) -> Performance:
        # (creatorInRange, opponentInRange, creatorInRangeTime, opponentInRangeTime, leader)
        creator_in, opponent_in, creator_time, opponent_time, leader = raw
        return Performance(
            creator_score=int(creator_time),
            opponent_score=int(opponent_time),
            leader=leader,
            creator_in_range=bool(creator_in),
            opponent_in_range=bool(opponent_in),
        )


@dataclass(frozen=True)
class FeeBattle(Battle):
    battle_type: ClassVar[BattleType] = BattleType.FEE
    performance_function: ClassVar[str] = "getCurrentFeePerformance"
    score_unit: ClassVar[str] = " fee rate"

    def parse_performance(self, raw) -> Performance:
        # (creatorFees, opponentFees, creatorFeeRate, opponentFeeRate, leader)
        _creator_fees, _opponent_fees, creator_rate, opponent_rate, leader = raw
        return Performance(
            creator_score=int(creator_rate),
            opponent_score=int(opponent_rate),
            leader=leader,
        )


@dataclass(frozen=True)
class BattleAnalysis:
    battle_id: int
    battle_type: BattleType
    status: BattleStatus
    is_expired: bool
    time_remaining: int
    recommendation: str
    creator_score: int = 0
    opponent_score: int = 0
    current_leader: str = ""
    creator_dex: str = "UNKNOWN"
    opponent_dex: str = "UNKNOWN"
    pool_state: PoolState | None = None
    creator_position: PositionAnalysis | None = None
    opponent_position: PositionAnalysis | None = None


# ---------------------------------------------------------------------------
# Strategy engine
# ---------------------------------------------------------------------------


class ActionType(str, Enum):
    RESOLVE = "resolve"
    UPDATE_STATUS = "update_status"
    ANALYZE = "analyze"
    CROSS_CHAIN_ENTRY = "cross_chain_entry"


class ActionOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class EngineState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class AgentAction:
    type: ActionType
    priority: int
    reasoning: str
    battle_id: int | None = None
    battle_type: BattleType | None = None
    payload: dict | None = None


@dataclass(frozen=True)
class ActionResult:
    action: AgentAction
    outcome: ActionOutcome
    tx_hash: str | None = None
    gas_used: int | None = None
    block_number: int | None = None
    reason: str | None = None
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class MonitorResult:
    analyses: tuple[BattleAnalysis, ...] = ()
    active_ids: tuple[int, ...] = ()
    pending_ids: tuple[int, ...] = ()
    expired_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class EngineSnapshot:
    started_at: float
    cycle_count: int = 0
    updated_at: float | None = None
    monitor: MonitorResult | None = None
    decisions: tuple[AgentAction, ...] = ()
    results: tuple[ActionResult, ...] = ()
    routes: tuple["RouteOption", ...] = ()
    last_error: str | None = None


# ---------------------------------------------------------------------------
# Cross-chain entry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TargetPool:
    chain_id: int
    token0: str
    token1: str
    tick_lower: int
    tick_upper: int


@dataclass(frozen=True)
class EntryIntent:
    source_chain: int
    source_token: str
    amount: int
    user_address: str
    target_pool: TargetPool
    battle_id: int | None = None
    duration: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EntryIntent":
        pool = data["target_pool"]
        return cls(
            source_chain=int(data["source_chain"]),
            source_token=str(data["source_token"]),
            amount=int(data["amount"]),
            user_address=str(data["user_address"]),
            target_pool=TargetPool(
                chain_id=int(pool["chain_id"]),
                token0=str(pool["token0"]),
                token1=str(pool["token1"]),
                tick_lower=int(pool["tick_lower"]),
                tick_upper=int(pool["tick_upper"]),
            ),
            battle_id=int(data["battle_id"]) if data.get("battle_id") is not None else None,
            duration=int(data["duration"]) if data.get("duration") is not None else None,
        )


@dataclass(frozen=True)
class IntentValidation:
    is_valid: bool
    issues: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class RouteOption:
    method: str
    estimated_time: str
    estimated_output: str
    fees: str
    steps: int
    recommended: bool
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TransactionStep:
    step: int
    action: str
    chain_id: int
    to: str
    description: str
    data: str | None = None


@dataclass(frozen=True)
class ExecutionPlan:
    intent: EntryIntent
    selected_route: RouteOption
    transactions: tuple[TransactionStep, ...]
    estimated_total_gas: float  # millions of gas units

    @property
    def gas_label(self) -> str:
        return f"~{self.estimated_total_gas:.2f}M gas"


@dataclass(frozen=True)
class Attestation:
    status: str
    attestation: str = ""

    @property
    def complete(self) -> bool:
        return self.status == "complete"


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def to_jsonable(obj: Any) -> Any:
    """Convert records (dataclasses, enums, bytes) into JSON-friendly values."""
    if isinstance(obj, Enum):
        return obj.name if isinstance(obj, IntEnum) else obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    return obj
