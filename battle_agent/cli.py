#!/usr/bin/env python3
"""Command-line entry point for the LP battle agent."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from battle_agent import config
from battle_agent.analyzer import entry_verdict, score_battle_for_entry
from battle_agent.arena import connect
from battle_agent.crosschain import CctpBridge, CrossChainEntryPlanner, LiFiClient
from battle_agent.engine import build_engine
from battle_agent.errors import BattleAgentError, InvalidIntentError, NoRouteAvailable
from battle_agent.models import BattleStatus, EntryIntent, TargetPool, to_jsonable
from battle_agent.position import sqrt_price_to_price
from battle_agent.server import serve
from battle_agent.storage_decoder import StorageDecoder

logger = logging.getLogger("battle_agent")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(level: str = config.LOG_LEVEL, log_dir: str | None = None) -> None:
    """Console handler at ``level`` plus a DEBUG file handler on decisions.log."""
    log_dir = log_dir or os.path.dirname(os.path.abspath(config.JOURNAL_PATH))
    os.makedirs(log_dir, exist_ok=True)

    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)

    fh = logging.FileHandler(os.path.join(log_dir, "decisions.log"))
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(fh)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LP battle monitoring and settlement agent")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Console log level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("monitor", help="Run the MONITOR -> DECIDE -> ACT loop until Ctrl+C")
    sub.add_parser("status", help="One read-only MONITOR pass, printed as a summary")
    sub.add_parser("settle", help="Run exactly one full cycle (may send transactions)")
    sub.add_parser("battles", help="List battle ids by status")

    analyze = sub.add_parser("analyze", help="Analyze specific battles")
    analyze.add_argument("battle_ids", type=int, nargs="+")

    serve_p = sub.add_parser("serve", help="Run the HTTP API (and the engine loop)")
    serve_p.add_argument("--host", default=config.SERVER_HOST)
    serve_p.add_argument("--port", type=int, default=config.SERVER_PORT)
    serve_p.add_argument(
        "--no-start", action="store_true", help="Serve the API without starting the loop"
    )

    plan = sub.add_parser("plan-entry", help="Plan a cross-chain battle entry (no transactions)")
    plan.add_argument("--source-chain", type=int, required=True)
    plan.add_argument("--source-token", required=True)
    plan.add_argument("--amount", type=int, required=True, help="Raw units of the source token")
    plan.add_argument("--user", required=True, help="User address on both chains")
    plan.add_argument("--target-chain", type=int, default=config.CHAIN_ID)
    plan.add_argument("--token0", required=True)
    plan.add_argument("--token1", required=True)
    plan.add_argument("--tick-lower", type=int, required=True)
    plan.add_argument("--tick-upper", type=int, required=True)
    plan.add_argument("--battle-id", type=int, default=None, help="Join this battle")
    plan.add_argument("--duration", type=int, default=None, help="Duration when creating")
    plan.add_argument("--json", action="store_true", help="Print the plan as JSON")

    pool = sub.add_parser("pool", help="Decode a pool's slot0 and liquidity from raw storage")
    pool.add_argument("pool_id", help="32-byte pool id (0x-prefixed hex)")
    pool.add_argument("--decimals0", type=int, default=18)
    pool.add_argument("--decimals1", type=int, default=config.USDC_DECIMALS)

    bridge = sub.add_parser("bridge-status", help="Status of a LI.FI transfer")
    bridge.add_argument("--tx-hash", required=True)
    bridge.add_argument("--from-chain", type=int, required=True)
    bridge.add_argument("--to-chain", type=int, required=True)

    mint = sub.add_parser("cctp-mint", help="Check a CCTP attestation and build the mint call")
    mint.add_argument("--message-hash", required=True)
    mint.add_argument("--dest-chain", required=True, choices=sorted(config.CCTP_CONTRACTS))
    mint.add_argument("--message", default=None, help="Raw message bytes from the burn receipt")

    return parser.parse_args(argv)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def cmd_monitor(args) -> int:
    engine = build_engine(config)
    engine.run_forever()
    return 0


def cmd_status(args) -> int:
    engine = build_engine(config)
    balance = engine.arena.get_balance()
    monitor = engine.monitor()

    print("=" * 60)
    print(f"Agent:    {engine.arena.address}")
    print(f"Balance:  {balance.value:.6f} ETH" if balance.ok else "Balance:  unavailable")
    print(f"Chain:    {config.CHAIN_NAME} ({config.CHAIN_ID})")
    print(
        f"Battles:  active={len(monitor.active_ids)} pending={len(monitor.pending_ids)} "
        f"expired={len(monitor.expired_ids)}"
    )
    print("=" * 60)
    for analysis in monitor.analyses:
        _print_analysis(analysis)
    return 0


def cmd_analyze(args) -> int:
    engine = build_engine(config)
    rc = 0
    for battle_id in args.battle_ids:
        result = engine.analyzer.analyze_battle(battle_id)
        if not result.ok:
            print(f"Battle #{battle_id}: unavailable ({result.reason})")
            rc = 1
            continue
        _print_analysis(result.value)
        if result.value.status == BattleStatus.PENDING:
            score = score_battle_for_entry(result.value)
            print(f"    entry score: {score}/100 ({entry_verdict(score)})")
    return rc


def cmd_settle(args) -> int:
    engine = build_engine(config)
    snap = engine.run_cycle()
    for result in snap.results:
        line = f"{result.action.type.value:<14} battle={result.action.battle_id} {result.outcome.value}"
        if result.tx_hash:
            line += f" tx={result.tx_hash}"
        if result.reason:
            line += f" ({result.reason})"
        print(line)
    if snap.last_error:
        print(f"cycle error: {snap.last_error}")
        return 1
    return 0


def cmd_battles(args) -> int:
    engine = build_engine(config)
    count = engine.arena.get_battle_count()
    print(f"Total battles: {count.value if count.ok else 'unavailable'}")
    for status in BattleStatus:
        ids = engine.arena.get_battles_by_status(status)
        label = ", ".join(str(i) for i in ids.value) if ids.ok else f"unavailable ({ids.reason})"
        print(f"  {status.name:<9} {label or '-'}")
    return 0


def cmd_serve(args) -> int:
    engine = build_engine(config)
    serve(engine, args.host, args.port, start_engine=not args.no_start)
    return 0


def cmd_plan_entry(args) -> int:
    intent = EntryIntent(
        source_chain=args.source_chain,
        source_token=args.source_token,
        amount=args.amount,
        user_address=args.user,
        target_pool=TargetPool(
            chain_id=args.target_chain,
            token0=args.token0,
            token1=args.token1,
            tick_lower=args.tick_lower,
            tick_upper=args.tick_upper,
        ),
        battle_id=args.battle_id,
        duration=args.duration,
    )
    planner = CrossChainEntryPlanner(config, LiFiClient(config), CctpBridge(config))
    try:
        plan, options = planner.plan_entry(intent)
    except InvalidIntentError as e:
        for issue in e.issues:
            print(f"invalid: {issue}")
        return 2
    except NoRouteAvailable as e:
        print(f"no route: {e}")
        return 1

    if args.json:
        payload = to_jsonable(plan)
        payload["gas_label"] = plan.gas_label
        print(json.dumps(payload, indent=2))
        return 0

    print("=" * 70)
    print("CROSS-CHAIN BATTLE ENTRY EXECUTION PLAN")
    print("=" * 70)
    print(f"From chain {intent.source_chain} -> chain {intent.target_pool.chain_id}")
    print(f"Amount: {intent.amount}")
    print(f"Candidates: {', '.join(o.method for o in options)}")
    route = plan.selected_route
    print(f"Route:  {route.method}  time={route.estimated_time}  out={route.estimated_output}")
    print(f"Fees:   {route.fees}")
    print("Transactions:")
    for tx in plan.transactions:
        chain_label = "wait" if tx.chain_id == 0 else f"[{tx.chain_id}]"
        print(f"  {tx.step}. {chain_label} {tx.action}")
        print(f"     {tx.description}")
    print(f"Estimated total gas: {plan.gas_label}")
    print("=" * 70)
    return 0


def cmd_pool(args) -> int:
    decoder = StorageDecoder(connect(config), config)
    pool_id = bytes.fromhex(args.pool_id[2:] if args.pool_id.startswith("0x") else args.pool_id)

    state = decoder.read_pool_state(pool_id)
    if not state.ok:
        print(f"Pool state unavailable: {state.reason}")
        return 1
    liquidity = decoder.read_pool_liquidity(pool_id)

    pool = state.value
    price = sqrt_price_to_price(pool.sqrt_price_x96, args.decimals0, args.decimals1)
    print(f"Pool {args.pool_id}")
    print(f"  tick:          {pool.tick}")
    print(f"  sqrtPriceX96:  {pool.sqrt_price_x96}")
    print(f"  price:         {price:.6f}")
    print(f"  fees:          lp={pool.lp_fee} protocol={pool.protocol_fee}")
    print(f"  liquidity:     {liquidity.value if liquidity.ok else 'unavailable'}")
    return 0


def cmd_bridge_status(args) -> int:
    status = LiFiClient(config).get_status(args.tx_hash, args.from_chain, args.to_chain)
    if status is None:
        print("Status unavailable")
        return 1
    print(json.dumps(status, indent=2))
    return 0


def cmd_cctp_mint(args) -> int:
    bridge = CctpBridge(config)
    result = bridge.get_attestation(args.message_hash)
    if not result.ok:
        print(f"Attestation unavailable: {result.reason}")
        return 1
    attestation = result.value
    if not attestation.complete:
        print(f"Attestation {attestation.status}; try again later")
        return 0

    print("Attestation complete")
    if args.message:
        tx = bridge.prepare_receive_message_data(
            args.dest_chain, args.message, attestation.attestation
        )
        print(f"receiveMessage on {args.dest_chain}:")
        print(f"  to:   {tx['to']}")
        print(f"  data: {tx['data']}")
    return 0


def _print_analysis(analysis) -> None:
    print(
        f"Battle #{analysis.battle_id} [{analysis.battle_type.name}] {analysis.status.name} "
        f"remaining={analysis.time_remaining}s"
    )
    print(f"    {analysis.creator_dex} vs {analysis.opponent_dex}")
    if analysis.pool_state is not None:
        print(f"    pool tick={analysis.pool_state.tick} lp_fee={analysis.pool_state.lp_fee}")
    print(f"    score {analysis.creator_score} vs {analysis.opponent_score}")
    print(f"    -> {analysis.recommendation}")


COMMANDS = {
    "monitor": cmd_monitor,
    "status": cmd_status,
    "analyze": cmd_analyze,
    "settle": cmd_settle,
    "battles": cmd_battles,
    "serve": cmd_serve,
    "plan-entry": cmd_plan_entry,
    "pool": cmd_pool,
    "bridge-status": cmd_bridge_status,
    "cctp-mint": cmd_cctp_mint,
}


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        return COMMANDS[args.command](args)
    except (BattleAgentError, ConnectionError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
