"""
BattleAnalyzer: turns raw battle records into in-range / leader /
recommendation data for the strategy engine.

Range battles are scored on accrued in-range time, fee battles on fee
accumulation rate. An expired battle is always reported so it can be
resolved, even when its performance or pool state cannot be read. For any
other battle a missing read makes the analysis unavailable for this cycle;
the next MONITOR pass rediscovers the battle.
"""

import logging
import time

from battle_agent.models import (
    Battle,
    BattleAnalysis,
    BattleStatus,
    BattleType,
    PoolState,
    ReadResult,
    dex_name,
)
from battle_agent.position import analyze_position, is_in_range

logger = logging.getLogger(__name__)

RESOLVE_NOW = "RESOLVE NOW - Battle expired, earn resolver reward"
WAITING_FOR_OPPONENT = "PENDING - Waiting for opponent to join"
BOTH_IN_RANGE = "Both in range - close battle"
BOTH_OUT_OF_RANGE = "Both out of range - waiting for tick movement"

# Entry scoring
ENTRY_BASE_SCORE = 50
HOUR = 3600


class BattleAnalyzer:
    """Analyzes battles using registry reads and decoded pool state."""

    def __init__(self, arena, storage_decoder, now_fn=time.time):
        self.arena = arena
        self.storage_decoder = storage_decoder
        self.now_fn = now_fn

    def analyze_battle(self, battle_id: int) -> ReadResult[BattleAnalysis]:
        battle_res = self.arena.get_battle(battle_id)
        if not battle_res.ok:
            return ReadResult.unavailable(battle_res.reason)
        battle = battle_res.value

        if battle.is_resolved:
            return ReadResult.present(
                BattleAnalysis(
                    battle_id=battle.battle_id,
                    battle_type=battle.battle_type,
                    status=battle.status,
                    is_expired=True,
                    time_remaining=0,
                    recommendation=f"Battle resolved. Winner: {battle.winner}",
                    current_leader=battle.winner,
                    creator_dex=dex_name(battle.creator_dex),
                    opponent_dex=dex_name(battle.opponent_dex),
                )
            )

        now = self.now_fn()
        expired = self._is_expired(battle, now)
        time_remaining = 0 if expired else battle.time_remaining(now)

        base = dict(
            battle_id=battle.battle_id,
            battle_type=battle.battle_type,
            status=battle.status,
            is_expired=expired,
            time_remaining=time_remaining,
            creator_dex=dex_name(battle.creator_dex),
            opponent_dex=dex_name(battle.opponent_dex),
        )

        if not battle.has_opponent:
            return ReadResult.present(BattleAnalysis(recommendation=WAITING_FOR_OPPONENT, **base))

        perf_res = self.arena.get_performance(battle)
        if not perf_res.ok:
            if expired:
                # Settlement does not depend on scores
                logger.debug(
                    "Battle %d expired, performance unavailable: %s", battle.battle_id, perf_res.reason
                )
                return ReadResult.present(BattleAnalysis(recommendation=RESOLVE_NOW, **base))
            logger.debug("Battle %d skipped: %s", battle.battle_id, perf_res.reason)
            return ReadResult.unavailable(perf_res.reason)
        perf = perf_res.value

        pool_res = self.storage_decoder.read_pool_state(battle.pool_id)
        pool_state = pool_res.value if pool_res.ok else None

        if battle.battle_type == BattleType.FEE:
            # Fee battles have no in-range flags on-chain; derive them from the pool tick.
            if pool_state is not None:
                creator_in = is_in_range(
                    pool_state.tick, battle.creator_tick_lower, battle.creator_tick_upper
                )
                opponent_in = is_in_range(
                    pool_state.tick, battle.opponent_tick_lower, battle.opponent_tick_upper
                )
            elif expired:
                creator_in = opponent_in = None
            else:
                logger.debug("Fee battle %d skipped: %s", battle.battle_id, pool_res.reason)
                return ReadResult.unavailable(pool_res.reason)
        else:
            creator_in = perf.creator_in_range
            opponent_in = perf.opponent_in_range

        creator_pos, opponent_pos = self._positions(battle, pool_state)

        recommendation = recommend(
            time_remaining,
            creator_in,
            opponent_in,
            perf.creator_score,
            perf.opponent_score,
            battle.score_unit,
        )
        leader = battle.creator if perf.creator_score >= perf.opponent_score else battle.opponent

        return ReadResult.present(
            BattleAnalysis(
                recommendation=recommendation,
                creator_score=perf.creator_score,
                opponent_score=perf.opponent_score,
                current_leader=leader,
                pool_state=pool_state,
                creator_position=creator_pos,
                opponent_position=opponent_pos,
                **base,
            )
        )

    def _is_expired(self, battle: Battle, now: float) -> bool:
        if battle.status >= BattleStatus.EXPIRED:
            return True
        if battle.status != BattleStatus.ACTIVE or battle.start_time == 0:
            return False
        expired_res = self.arena.is_battle_expired(battle.battle_id)
        if expired_res.ok:
            return expired_res.value
        return now >= battle.end_time

    @staticmethod
    def _positions(battle: Battle, pool_state: PoolState | None):
        if pool_state is None:
            return None, None
        return (
            analyze_position(pool_state.tick, battle.creator_tick_lower, battle.creator_tick_upper),
            analyze_position(
                pool_state.tick, battle.opponent_tick_lower, battle.opponent_tick_upper
            ),
        )


def recommend(
    time_remaining: int,
    creator_in_range: bool,
    opponent_in_range: bool,
    creator_score: int,
    opponent_score: int,
    unit: str = "",
) -> str:
    """First matching row wins."""
    if time_remaining == 0:
        return RESOLVE_NOW
    if creator_in_range and opponent_in_range:
        return BOTH_IN_RANGE
    if not creator_in_range and not opponent_in_range:
        return BOTH_OUT_OF_RANGE
    if creator_score > opponent_score:
        return f"Creator leading with {creator_score}{unit}"
    if opponent_score > creator_score:
        return f"Opponent leading with {opponent_score}{unit}"
    return f"Tied at {creator_score}{unit}"


def score_battle_for_entry(analysis: BattleAnalysis) -> int:
    """Score a battle's attractiveness for entry (0-100). Only pending battles are joinable."""
    if analysis.status != BattleStatus.PENDING:
        return 0

    score = ENTRY_BASE_SCORE
    # Shorter duration = less risk
    hours = analysis.time_remaining / HOUR
    if hours <= 1:
        score += 20
    elif hours <= 6:
        score += 10
    elif hours >= 24:
        score -= 10

    return max(0, min(100, score))


def entry_verdict(score: int) -> str:
    if score > 60:
        return "worth considering"
    if score > 30:
        return "moderate opportunity"
    return "not recommended"
