"""
ActionJournal: every action outcome the engine produces, appended to a
JSON-lines file and mirrored in memory for the HTTP façade.

Submitted transactions are also kept as a separate evidence list so the
hashes can be linked to a block explorer.
"""

import json
import logging
import os
import threading
from collections import Counter, deque
from datetime import datetime, timezone

from battle_agent.models import ActionOutcome, ActionResult, to_jsonable

logger = logging.getLogger(__name__)


class ActionJournal:
    def __init__(self, path: str | None = None, max_records: int = 500, explorer_tx_url: str = ""):
        self.path = path
        self.explorer_tx_url = explorer_tx_url
        self._records: deque[dict] = deque(maxlen=max_records)
        self._transactions: list[dict] = []
        self._lock = threading.Lock()

        if self.path:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)

    def record(self, result: ActionResult) -> dict:
        """Journal one action outcome. Returns the stored record."""
        action = result.action
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "action": action.type.value,
            "priority": action.priority,
            "battle_id": action.battle_id,
            "battle_type": action.battle_type.name if action.battle_type is not None else None,
            "reasoning": action.reasoning,
            "outcome": result.outcome.value,
            "tx_hash": result.tx_hash,
            "gas_used": result.gas_used,
            "block_number": result.block_number,
            "reason": result.reason,
            "details": to_jsonable(result.details),
        }

        with self._lock:
            self._records.append(record)
            if result.tx_hash and result.outcome == ActionOutcome.SUCCESS:
                self._transactions.append(
                    {
                        "hash": result.tx_hash,
                        "type": action.type.value,
                        "battle_id": action.battle_id,
                        "description": action.reasoning,
                        "gas_used": result.gas_used,
                        "block_number": result.block_number,
                        "timestamp": record["ts"],
                        "explorer_url": self.explorer_tx_url + result.tx_hash
                        if self.explorer_tx_url
                        else None,
                    }
                )
            if self.path:
                with open(self.path, "a") as f:
                    f.write(json.dumps(record) + "\n")

        logger.debug(
            "JOURNAL: %s battle=%s outcome=%s tx=%s",
            record["action"],
            record["battle_id"],
            record["outcome"],
            record["tx_hash"],
        )
        return record

    def recent(self, limit: int | None = None) -> list[dict]:
        """Newest last."""
        with self._lock:
            records = list(self._records)
        return records[-limit:] if limit else records

    def transactions(self) -> list[dict]:
        with self._lock:
            return list(self._transactions)

    def summary(self) -> dict:
        with self._lock:
            records = list(self._records)
            tx_count = len(self._transactions)
        return {
            "total_actions": len(records),
            "by_outcome": dict(Counter(r["outcome"] for r in records)),
            "by_action": dict(Counter(r["action"] for r in records)),
            "total_transactions": tx_count,
        }
