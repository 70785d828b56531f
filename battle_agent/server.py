"""
HTTP façade over a StrategyEngine.

Read endpoints republish the engine's last-cycle snapshot; POST endpoints
trigger a cycle, start / stop the loop, or plan a cross-chain entry.
"""

import logging
import time

from flask import Flask, jsonify, request

from battle_agent.errors import InvalidIntentError, NoRouteAvailable
from battle_agent.models import EntryIntent, to_jsonable

logger = logging.getLogger(__name__)


def create_app(engine) -> Flask:
    app = Flask(__name__)

    @app.route("/health")
    def health():
        snap = engine.snapshot()
        if snap.updated_at is not None:
            return jsonify({"ok": True, "state": engine.state.value}), 200
        return jsonify({"ok": False, "state": "initializing"}), 503

    @app.route("/api/status")
    def api_status():
        snap = engine.snapshot()
        monitor = snap.monitor
        age = round(time.time() - snap.updated_at, 1) if snap.updated_at else None
        return jsonify(
            {
                "state": engine.state.value,
                "stop_requested": engine.stop_requested,
                "agent_address": getattr(engine.arena, "address", None),
                "cycle_count": snap.cycle_count,
                "interval_seconds": engine.interval,
                "started_at": snap.started_at,
                "updated_at": snap.updated_at,
                "age_seconds": age,
                "last_error": snap.last_error,
                "battles": {
                    "active": len(monitor.active_ids) if monitor else 0,
                    "pending": len(monitor.pending_ids) if monitor else 0,
                    "expired": len(monitor.expired_ids) if monitor else 0,
                    "analyzed": len(monitor.analyses) if monitor else 0,
                },
                "journal": engine.journal.summary(),
            }
        )

    @app.route("/api/battles")
    def api_battles():
        monitor = engine.last_monitor_result()
        if monitor is None:
            return jsonify({"analyses": [], "active_ids": [], "pending_ids": [], "expired_ids": []})
        return jsonify(to_jsonable(monitor))

    @app.route("/api/decisions")
    def api_decisions():
        return jsonify(to_jsonable(engine.last_decisions()))

    @app.route("/api/results")
    def api_results():
        return jsonify(to_jsonable(engine.last_results()))

    @app.route("/api/routes")
    def api_routes():
        return jsonify(to_jsonable(engine.last_routes()))

    @app.route("/api/logs")
    def api_logs():
        limit = request.args.get("limit", default=50, type=int)
        return jsonify(engine.journal.recent(limit))

    @app.route("/api/transactions")
    def api_transactions():
        txs = engine.journal.transactions()
        return jsonify({"total": len(txs), "transactions": txs})

    @app.route("/api/cycle", methods=["POST"])
    def api_cycle():
        snap = engine.run_cycle()
        return jsonify(
            {
                "cycle_count": snap.cycle_count,
                "last_error": snap.last_error,
                "decisions": to_jsonable(snap.decisions),
                "results": to_jsonable(snap.results),
            }
        )

    @app.route("/api/start", methods=["POST"])
    def api_start():
        started = engine.start()
        return jsonify({"started": started, "state": engine.state.value})

    @app.route("/api/stop", methods=["POST"])
    def api_stop():
        # Don't block the request on an in-flight cycle
        engine.stop(wait=False)
        return jsonify({"stopping": engine.stop_requested, "state": engine.state.value})

    @app.route("/api/plan-entry", methods=["POST"])
    def api_plan_entry():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({"error": "expected a JSON object"}), 400
        try:
            intent = EntryIntent.from_dict(body)
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"error": f"malformed intent: {e}"}), 400

        try:
            plan = engine.plan_cross_chain_entry(intent)
        except InvalidIntentError as e:
            return jsonify({"error": "invalid intent", "issues": e.issues}), 400
        except NoRouteAvailable as e:
            return jsonify({"error": str(e)}), 422

        payload = to_jsonable(plan)
        payload["gas_label"] = plan.gas_label
        return jsonify(payload)

    return app


def serve(engine, host: str, port: int, start_engine: bool = True) -> None:
    """Run the façade (and optionally the engine loop) until interrupted."""
    app = create_app(engine)
    if start_engine:
        engine.start()
    logger.info("Battle agent API starting on http://%s:%d", host, port)
    try:
        app.run(host=host, port=port, debug=False, threaded=True)
    finally:
        engine.stop()
