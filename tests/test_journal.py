"""
Tests for the action journal.
"""
import json

from battle_agent.journal import ActionJournal
from battle_agent.models import ActionOutcome, ActionResult, ActionType, AgentAction, BattleType


def result(outcome, battle_id=1, tx_hash=None):
    action = AgentAction(
        type=ActionType.RESOLVE,
        priority=100,
        battle_id=battle_id,
        battle_type=BattleType.RANGE,
        reasoning="Battle expired",
    )
    return ActionResult(action=action, outcome=outcome, tx_hash=tx_hash, gas_used=85_000)


class TestActionJournal:
    def test_jsonl_file(self, tmp_path):
        path = tmp_path / "decisions" / "decisions.jsonl"
        journal = ActionJournal(str(path))

        journal.record(result(ActionOutcome.SUCCESS, tx_hash="0xaa"))
        journal.record(result(ActionOutcome.FAILED, battle_id=2))

        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert [line["outcome"] for line in lines] == ["success", "failed"]
        assert lines[0]["battle_type"] == "RANGE"
        assert lines[1]["tx_hash"] is None

    def test_only_successful_hashes_are_transactions(self):
        journal = ActionJournal(explorer_tx_url="https://sepolia.arbiscan.io/tx/")

        journal.record(result(ActionOutcome.SUCCESS, tx_hash="0xaa"))
        journal.record(result(ActionOutcome.FAILED, tx_hash="0xbb"))

        (tx,) = journal.transactions()
        assert tx["hash"] == "0xaa"
        assert tx["explorer_url"] == "https://sepolia.arbiscan.io/tx/0xaa"

    def test_ring_and_summary(self):
        journal = ActionJournal(max_records=3)
        for i in range(5):
            journal.record(result(ActionOutcome.SKIPPED, battle_id=i))

        assert [r["battle_id"] for r in journal.recent()] == [2, 3, 4]
        assert [r["battle_id"] for r in journal.recent(1)] == [4]
        assert journal.summary() == {
            "total_actions": 3,
            "by_outcome": {"skipped": 3},
            "by_action": {"resolve": 3},
            "total_transactions": 0,
        }
