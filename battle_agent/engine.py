"""
StrategyEngine: the MONITOR -> DECIDE -> ACT loop.

Each cycle:

    MONITOR  fetch active / pending / expired ids, analyze active then expired
    DECIDE   turn analyses into prioritized actions (resolve > update > analyze)
    ACT      execute actions one at a time; writes are awaited to completion

The engine is the only component that issues writes. Everything it learns is
published as an immutable EngineSnapshot that the HTTP façade reads.
"""

import dataclasses
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from battle_agent.analyzer import BattleAnalyzer, entry_verdict, score_battle_for_entry
from battle_agent.arena import ArenaClient, connect
from battle_agent.config import validate_config
from battle_agent.crosschain import CctpBridge, CrossChainEntryPlanner, LiFiClient
from battle_agent.errors import BattleAgentError, InvalidIntentError, TransactionFailed
from battle_agent.journal import ActionJournal
from battle_agent.models import (
    ActionOutcome,
    ActionResult,
    ActionType,
    AgentAction,
    BattleAnalysis,
    BattleStatus,
    BattleType,
    EngineSnapshot,
    EngineState,
    EntryIntent,
    ExecutionPlan,
    MonitorResult,
    ReadResult,
    RouteOption,
)
from battle_agent.storage_decoder import StorageDecoder

logger = logging.getLogger(__name__)


class StrategyEngine:
    """Autonomous LP battle monitor and settler."""

    RESOLVE_PRIORITY = 100
    UPDATE_STATUS_PRIORITY = 50
    ANALYZE_PRIORITY = 30
    CROSS_CHAIN_PRIORITY = 10

    def __init__(self, config, analyzer, arena, planner=None, journal=None):
        self.config = config
        self.analyzer = analyzer
        self.arena = arena
        self.planner = planner
        self.journal = journal or ActionJournal()
        self.interval = float(config.POLL_INTERVAL_SECONDS)

        # Held for a whole cycle so a manual cycle never interleaves with a scheduled one
        self._cycle_lock = threading.Lock()
        self._snapshot_lock = threading.Lock()
        self._snapshot = EngineSnapshot(started_at=time.time())

        self._state_lock = threading.Lock()
        self._state = EngineState.STOPPED
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> EngineSnapshot:
        with self._snapshot_lock:
            return self._snapshot

    def _publish(self, **changes) -> None:
        with self._snapshot_lock:
            self._snapshot = dataclasses.replace(self._snapshot, updated_at=time.time(), **changes)

    def last_monitor_result(self) -> MonitorResult | None:
        return self.snapshot().monitor

    def last_decisions(self) -> tuple[AgentAction, ...]:
        return self.snapshot().decisions

    def last_results(self) -> tuple[ActionResult, ...]:
        return self.snapshot().results

    def last_routes(self) -> tuple[RouteOption, ...]:
        return self.snapshot().routes

    @property
    def cycle_count(self) -> int:
        return self.snapshot().cycle_count

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == EngineState.RUNNING

    # ------------------------------------------------------------------
    # MONITOR
    # ------------------------------------------------------------------

    def monitor(self) -> MonitorResult:
        statuses = (BattleStatus.ACTIVE, BattleStatus.PENDING, BattleStatus.EXPIRED)

        with ThreadPoolExecutor(max_workers=self.config.MONITOR_WORKERS) as executor:
            list_futures = {s: executor.submit(self.arena.get_battles_by_status, s) for s in statuses}
            ids = {s: self._ids_from(s, f) for s, f in list_futures.items()}

            active, pending, expired = (
                ids[BattleStatus.ACTIVE],
                ids[BattleStatus.PENDING],
                ids[BattleStatus.EXPIRED],
            )
            logger.info(
                "[MONITOR] active=%d pending=%d expired=%d", len(active), len(pending), len(expired)
            )

            # Discovery order: active ids first, then expired
            discovered = list(dict.fromkeys(active + expired))
            futures = [
                (battle_id, executor.submit(self.analyzer.analyze_battle, battle_id))
                for battle_id in discovered
            ]

            analyses = []
            for battle_id, future in futures:
                analysis = self._analysis_from(battle_id, future)
                if analysis is not None:
                    analyses.append(analysis)
                    logger.info(
                        "[MONITOR] Battle #%d (%s, %s): %s",
                        analysis.battle_id,
                        analysis.battle_type.name,
                        analysis.status.name,
                        analysis.recommendation,
                    )

        return MonitorResult(
            analyses=tuple(analyses),
            active_ids=tuple(active),
            pending_ids=tuple(pending),
            expired_ids=tuple(expired),
        )

    @staticmethod
    def _ids_from(status: BattleStatus, future) -> list[int]:
        try:
            result = future.result()
        except Exception as e:
            logger.warning("[MONITOR] %s id list failed: %s", status.name, e)
            return []
        if not result.ok:
            logger.warning("[MONITOR] %s id list unavailable: %s", status.name, result.reason)
            return []
        return list(result.value)

    @staticmethod
    def _analysis_from(battle_id: int, future) -> BattleAnalysis | None:
        try:
            result: ReadResult[BattleAnalysis] = future.result()
        except Exception as e:
            logger.error("[MONITOR] Analysis of battle #%d raised: %s", battle_id, e, exc_info=True)
            return None
        if not result.ok:
            logger.warning("[MONITOR] Battle #%d skipped this cycle: %s", battle_id, result.reason)
            return None
        return result.value

    # ------------------------------------------------------------------
    # DECIDE
    # ------------------------------------------------------------------

    def decide(self, monitor: MonitorResult) -> list[AgentAction]:
        actions = []

        for analysis in monitor.analyses:
            if analysis.is_expired and analysis.status != BattleStatus.RESOLVED:
                actions.append(
                    AgentAction(
                        type=ActionType.RESOLVE,
                        priority=self.RESOLVE_PRIORITY,
                        battle_id=analysis.battle_id,
                        battle_type=analysis.battle_type,
                        reasoning=(
                            f"Battle #{analysis.battle_id} expired - "
                            "resolve to settle and earn resolver reward"
                        ),
                    )
                )
            elif (
                analysis.status == BattleStatus.ACTIVE
                and analysis.battle_type == BattleType.RANGE
            ):
                actions.append(
                    AgentAction(
                        type=ActionType.UPDATE_STATUS,
                        priority=self.UPDATE_STATUS_PRIORITY,
                        battle_id=analysis.battle_id,
                        battle_type=analysis.battle_type,
                        reasoning=(
                            f"Battle #{analysis.battle_id} active - refresh in-range tracking "
                            f"({analysis.time_remaining}s left)"
                        ),
                    )
                )

        for battle_id in monitor.pending_ids:
            actions.append(
                AgentAction(
                    type=ActionType.ANALYZE,
                    priority=self.ANALYZE_PRIORITY,
                    battle_id=battle_id,
                    reasoning=f"Battle #{battle_id} waiting for opponent - score entry opportunity",
                )
            )

        # sorted() is stable: equal priorities keep discovery order
        actions = sorted(actions, key=lambda a: -a.priority)
        for action in actions:
            logger.info(
                "[DECIDE] %s battle=%s priority=%d: %s",
                action.type.value,
                action.battle_id,
                action.priority,
                action.reasoning,
            )
        return actions

    # ------------------------------------------------------------------
    # ACT
    # ------------------------------------------------------------------

    def act(self, actions: list[AgentAction]) -> list[ActionResult]:
        results = []
        for action in actions:
            try:
                result = self._execute(action)
            except Exception as e:
                logger.error(
                    "[ACT] %s battle=%s raised: %s",
                    action.type.value,
                    action.battle_id,
                    e,
                    exc_info=True,
                )
                result = ActionResult(action=action, outcome=ActionOutcome.FAILED, reason=str(e))
            # A confirmed write stays confirmed even if journaling it fails
            try:
                self.journal.record(result)
            except Exception as e:
                logger.error(
                    "[ACT] Could not journal %s battle=%s: %s",
                    action.type.value,
                    action.battle_id,
                    e,
                )
            results.append(result)
        return results

    def _execute(self, action: AgentAction) -> ActionResult:
        if action.type == ActionType.RESOLVE:
            return self._write(action, self.arena.resolve_battle)
        if action.type == ActionType.UPDATE_STATUS:
            return self._write(action, self.arena.update_battle_status)
        if action.type == ActionType.ANALYZE:
            return self._score_entry(action)
        # cross-chain entries are advisory
        logger.info("[ACT] %s: %s", action.type.value, action.reasoning)
        return ActionResult(
            action=action, outcome=ActionOutcome.SUCCESS, details=dict(action.payload or {})
        )

    def _write(self, action: AgentAction, send) -> ActionResult:
        logger.info("[ACT] %s battle #%d", action.type.value, action.battle_id)
        try:
            tx = send(action.battle_id)
        except TransactionFailed as e:
            logger.error("[ACT] %s", e)
            return ActionResult(
                action=action, outcome=ActionOutcome.FAILED, tx_hash=e.tx_hash, reason=e.reason
            )
        except Exception as e:
            logger.error("[ACT] %s battle #%d failed: %s", action.type.value, action.battle_id, e)
            return ActionResult(action=action, outcome=ActionOutcome.FAILED, reason=str(e))

        logger.info(
            "[ACT] %s battle #%d confirmed: tx=%s gas=%d block=%d",
            action.type.value,
            action.battle_id,
            tx["tx_hash"],
            tx["gas_used"],
            tx["block_number"],
        )
        return ActionResult(
            action=action,
            outcome=ActionOutcome.SUCCESS,
            tx_hash=tx["tx_hash"],
            gas_used=tx["gas_used"],
            block_number=tx["block_number"],
        )

    def _score_entry(self, action: AgentAction) -> ActionResult:
        result = self.analyzer.analyze_battle(action.battle_id)
        if not result.ok:
            return ActionResult(action=action, outcome=ActionOutcome.SKIPPED, reason=result.reason)

        analysis = result.value
        score = score_battle_for_entry(analysis)
        verdict = entry_verdict(score)
        logger.info("[ACT] Battle #%d entry score %d/100 - %s", action.battle_id, score, verdict)
        return ActionResult(
            action=action,
            outcome=ActionOutcome.SUCCESS,
            details={
                "entry_score": score,
                "verdict": verdict,
                "time_remaining": analysis.time_remaining,
                "battle_type": analysis.battle_type.name,
            },
        )

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> EngineSnapshot:
        """Run one MONITOR -> DECIDE -> ACT cycle. Never raises."""
        with self._cycle_lock:
            cycle = self.cycle_count + 1
            logger.info("---------- Cycle %d ----------", cycle)
            try:
                monitor = self.monitor()
                self._publish(monitor=monitor)

                decisions = tuple(self.decide(monitor))
                self._publish(decisions=decisions)

                results = tuple(self.act(list(decisions)))
                self._publish(results=results, last_error=None)
            except Exception as e:
                logger.error("Error in cycle %d: %s", cycle, e, exc_info=True)
                self._publish(last_error=str(e))
            finally:
                self._publish(cycle_count=cycle)
            return self.snapshot()

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Spawn the loop thread; the first cycle runs immediately. False if already running.

        A stop that was requested but not yet honored is cancelled instead.
        """
        with self._state_lock:
            if self._state == EngineState.RUNNING:
                if not self._stop_event.is_set():
                    return False
                self._stop_event.clear()
                logger.info("Pending stop cancelled; engine keeps running.")
                return True
            self._stop_event.clear()
            self._state = EngineState.RUNNING
            self._thread = threading.Thread(target=self._loop, name="strategy-engine", daemon=True)
            self._thread.start()
        return True

    def stop(self, wait: bool = True, timeout: float | None = None) -> None:
        """Request a stop. An in-flight cycle finishes first."""
        self._stop_event.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    @property
    def stop_requested(self) -> bool:
        return self.is_running and self._stop_event.is_set()

    def _loop(self) -> None:
        logger.info("Engine running. Cycle every %.0fs.", self.interval)
        try:
            while True:
                started = time.monotonic()
                self.run_cycle()
                # Fixed rate: sleep out the remainder of the interval
                remaining = self.interval - (time.monotonic() - started)
                self._stop_event.wait(max(0.0, remaining))
                # Exit decision and state change are atomic with respect to start()
                with self._state_lock:
                    if self._stop_event.is_set():
                        self._state = EngineState.STOPPED
                        break
        finally:
            with self._state_lock:
                if self._thread is threading.current_thread():
                    self._state = EngineState.STOPPED
            logger.info("Engine stopped after %d cycle(s).", self.cycle_count)

    def run_forever(self) -> None:
        """Foreground loop for the CLI; Ctrl+C stops at the next cycle boundary."""
        self.start()
        try:
            while self._thread is not None and self._thread.is_alive():
                self._thread.join(1.0)
        except KeyboardInterrupt:
            logger.info("Agent stopped by user.")
            self.stop()

    # ------------------------------------------------------------------
    # Cross-chain entry
    # ------------------------------------------------------------------

    def plan_cross_chain_entry(self, intent: EntryIntent) -> ExecutionPlan:
        if self.planner is None:
            raise BattleAgentError("cross-chain planner is not configured")

        validation = self.planner.analyze_intent(intent)
        if not validation.is_valid:
            raise InvalidIntentError(list(validation.issues))

        options = self.planner.get_route_options(intent)
        self._publish(routes=tuple(options))

        route = self.planner.select_route(options)
        plan = self.planner.create_execution_plan(intent, route)

        action = AgentAction(
            type=ActionType.CROSS_CHAIN_ENTRY,
            priority=self.CROSS_CHAIN_PRIORITY,
            battle_id=intent.battle_id,
            reasoning=(
                f"Cross-chain entry {intent.source_chain} -> {intent.target_pool.chain_id} "
                f"via {route.method}"
            ),
            payload={
                "method": route.method,
                "steps": len(plan.transactions),
                "estimated_gas": plan.gas_label,
                "recommendations": list(validation.recommendations),
            },
        )
        self.journal.record(self._execute(action))
        return plan


def build_engine(config) -> StrategyEngine:
    """Wire up a live engine from configuration."""
    validate_config(config)
    w3 = connect(config)
    account = w3.eth.account.from_key(config.PRIVATE_KEY)
    logger.info("Agent address: %s", account.address)

    arena = ArenaClient(w3, account, config)
    analyzer = BattleAnalyzer(arena, StorageDecoder(w3, config))
    planner = CrossChainEntryPlanner(config, LiFiClient(config), CctpBridge(config))
    journal = ActionJournal(config.JOURNAL_PATH, explorer_tx_url=config.EXPLORER_TX_URL)
    return StrategyEngine(config, analyzer, arena, planner=planner, journal=journal)
