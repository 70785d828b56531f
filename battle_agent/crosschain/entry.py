"""
CrossChainEntryPlanner: plans how a user gets funds from any supported
chain into an LP battle.

Two bridging families are considered:

    lifi_direct  - LI.FI swap + bridge in one route (recommended when found)
    cctp_native  - Circle CCTP burn / attest / mint, USDC sources only

The chosen family's bridging steps are followed by a fixed tail: swap half
the USDC into the other pool asset, add liquidity at the intent's ticks,
then create or join the battle.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from battle_agent.config import chain_name
from battle_agent.crosschain.cctp import format_usdc
from battle_agent.crosschain.lifi import estimate_fees, format_amount
from battle_agent.errors import InvalidIntentError, NoRouteAvailable
from battle_agent.models import (
    EntryIntent,
    ExecutionPlan,
    IntentValidation,
    RouteOption,
    TransactionStep,
)

logger = logging.getLogger(__name__)

LIFI_DIRECT = "lifi_direct"
CCTP_NATIVE = "cctp_native"

WAIT_FOR_ATTESTATION = "waitForAttestation"


class CrossChainEntryPlanner:
    def __init__(self, config, lifi, cctp):
        self.config = config
        self.lifi = lifi
        self.cctp = cctp

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_usdc(self, chain_id: int, token: str) -> bool:
        usdc = self.config.USDC_ADDRESSES.get(chain_id)
        return usdc is not None and usdc.lower() == token.lower()

    def analyze_intent(self, intent: EntryIntent) -> IntentValidation:
        issues = []
        recommendations = []

        if chain_name(intent.source_chain) is None:
            issues.append(f"Source chain {intent.source_chain} not supported")
        if chain_name(intent.target_pool.chain_id) is None:
            issues.append(f"Target chain {intent.target_pool.chain_id} not supported")

        if intent.amount < self.config.MIN_ENTRY_AMOUNT:
            recommendations.append("Amount is small, fees may be significant percentage")
        if self.is_usdc(intent.source_chain, intent.source_token):
            recommendations.append("USDC detected - CCTP available for native bridging")
        if intent.source_chain == intent.target_pool.chain_id:
            recommendations.append("Same chain - no bridging needed, just swap")

        return IntentValidation(
            is_valid=not issues,
            issues=tuple(issues),
            recommendations=tuple(recommendations),
        )

    # ------------------------------------------------------------------
    # Route candidates
    # ------------------------------------------------------------------

    def get_route_options(self, intent: EntryIntent) -> list[RouteOption]:
        """Collect every available candidate, recommended first."""
        logger.info(
            "[ROUTES] Finding routes from chain %d to chain %d",
            intent.source_chain,
            intent.target_pool.chain_id,
        )
        candidates = (self._lifi_option, self._cctp_option)

        with ThreadPoolExecutor(max_workers=len(candidates)) as pool:
            futures = [(fn.__name__, pool.submit(fn, intent)) for fn in candidates]

        options = []
        for name, future in futures:
            try:
                option = future.result()
            except Exception as e:
                logger.warning("[ROUTES] %s unavailable: %s", name.strip("_"), e)
                continue
            if option is not None:
                options.append(option)

        # stable: ties keep generation order
        options.sort(key=lambda o: not o.recommended)
        logger.info(
            "[ROUTES] Found %d route option(s): %s",
            len(options),
            ", ".join(o.method for o in options) or "none",
        )
        return options

    def _lifi_option(self, intent: EntryIntent) -> RouteOption | None:
        routes = self.lifi.get_routes(
            intent.source_chain,
            intent.target_pool.chain_id,
            intent.source_token,
            intent.target_pool.token1,
            intent.amount,
            intent.user_address,
        )
        if not routes:
            return None
        best = routes[0]
        return RouteOption(
            method=LIFI_DIRECT,
            estimated_time="5-15 minutes",
            estimated_output=format_amount(best.get("toAmount", 0), 6),
            fees=estimate_fees(best),
            steps=len(best.get("steps", [])),
            recommended=True,
            details={"route": best},
        )

    def _cctp_option(self, intent: EntryIntent) -> RouteOption | None:
        if not self.is_usdc(intent.source_chain, intent.source_token):
            return None
        source = chain_name(intent.source_chain)
        dest = chain_name(intent.target_pool.chain_id)
        if not (self.cctp.supports(source) and self.cctp.supports(dest)):
            return None

        instructions = self.cctp.get_bridge_instructions(
            source, dest, intent.amount, intent.user_address
        )
        return RouteOption(
            method=CCTP_NATIVE,
            estimated_time="15-20 minutes",
            estimated_output=format_usdc(intent.amount),
            fees="~$0.50-1.00 (gas only)",
            steps=len(instructions),
            recommended=False,
            details={"bridge_instructions": instructions},
        )

    @staticmethod
    def select_route(options: list[RouteOption]) -> RouteOption:
        if not options:
            raise NoRouteAvailable("no bridging route available for this intent")
        return options[0]

    # ------------------------------------------------------------------
    # Plan assembly
    # ------------------------------------------------------------------

    def create_execution_plan(self, intent: EntryIntent, route: RouteOption) -> ExecutionPlan:
        steps: list[dict] = []

        if route.method == LIFI_DIRECT:
            for lifi_step in route.details["route"].get("steps", []):
                action = lifi_step.get("action", {})
                steps.append(
                    dict(
                        action=lifi_step.get("type", "lifi"),
                        chain_id=int(action.get("fromChainId", intent.source_chain)),
                        to=action.get("fromAddress") or "",
                        description="{}: {} - {} -> {}".format(
                            lifi_step.get("type", "lifi"),
                            lifi_step.get("tool", "?"),
                            action.get("fromToken", {}).get("symbol", "?"),
                            action.get("toToken", {}).get("symbol", "?"),
                        ),
                    )
                )
        elif route.method == CCTP_NATIVE:
            steps.extend(self._cctp_steps(intent))

        target = intent.target_pool.chain_id
        steps.append(
            dict(
                action="swap",
                chain_id=target,
                to="LI.FI Router",
                description="Swap 50% USDC -> other pool asset for LP position",
            )
        )
        steps.append(
            dict(
                action="addLiquidity",
                chain_id=target,
                to="Uniswap V4 PositionManager",
                description=(
                    f"Add liquidity at ticks "
                    f"[{intent.target_pool.tick_lower}, {intent.target_pool.tick_upper}]"
                ),
            )
        )
        arena = self.config.BATTLE_ARENA_ADDRESS or "BattleArena"
        if intent.battle_id is not None:
            steps.append(
                dict(
                    action="joinBattle",
                    chain_id=target,
                    to=arena,
                    description=f"Join battle #{intent.battle_id}",
                )
            )
        else:
            duration = intent.duration or self.config.DEFAULT_BATTLE_DURATION
            steps.append(
                dict(
                    action="createBattle",
                    chain_id=target,
                    to=arena,
                    description=f"Create new battle ({duration}s duration)",
                )
            )

        transactions = tuple(TransactionStep(step=i, **s) for i, s in enumerate(steps, start=1))
        plan = ExecutionPlan(
            intent=intent,
            selected_route=route,
            transactions=transactions,
            estimated_total_gas=self.estimate_total_gas(transactions),
        )
        logger.info(
            "[ROUTES] Execution plan via %s: %d steps, %s",
            route.method,
            len(transactions),
            plan.gas_label,
        )
        return plan

    def _cctp_steps(self, intent: EntryIntent) -> list[dict]:
        source = chain_name(intent.source_chain)
        dest = chain_name(intent.target_pool.chain_id)
        approve = self.cctp.prepare_approve_data(source, intent.amount)
        burn = self.cctp.prepare_deposit_for_burn_data(
            source, dest, intent.amount, intent.user_address
        )
        return [
            dict(
                action="approve",
                chain_id=intent.source_chain,
                to=approve["to"],
                data=approve["data"],
                description="Approve USDC for TokenMessenger",
            ),
            dict(
                action="depositForBurn",
                chain_id=intent.source_chain,
                to=burn["to"],
                data=burn["data"],
                description="Burn USDC on source chain",
            ),
            dict(
                action=WAIT_FOR_ATTESTATION,
                chain_id=0,
                to="",
                description="Wait for Circle attestation (~15 min)",
            ),
            dict(
                action="receiveMessage",
                chain_id=intent.target_pool.chain_id,
                to=self.config.CCTP_CONTRACTS[dest]["message_transmitter"],
                description="Mint USDC on destination chain",
            ),
        ]

    def estimate_total_gas(self, transactions) -> float:
        """Static per-action estimate, in millions of gas units."""
        total = sum(
            self.config.GAS_ESTIMATES.get(tx.action, self.config.DEFAULT_GAS_ESTIMATE)
            for tx in transactions
            if tx.action != WAIT_FOR_ATTESTATION
        )
        return total / 1_000_000

    # ------------------------------------------------------------------
    # One-shot
    # ------------------------------------------------------------------

    def plan_entry(self, intent: EntryIntent) -> tuple[ExecutionPlan, list[RouteOption]]:
        """Validate, collect candidates, pick one and build the plan."""
        validation = self.analyze_intent(intent)
        if not validation.is_valid:
            raise InvalidIntentError(list(validation.issues))
        for rec in validation.recommendations:
            logger.info("[ROUTES] %s", rec)

        options = self.get_route_options(intent)
        route = self.select_route(options)
        return self.create_execution_plan(intent, route), options
