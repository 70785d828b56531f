"""Exceptions raised by the battle agent."""


class BattleAgentError(Exception):
    """Base class for agent errors."""


class ConfigError(BattleAgentError):
    pass


class TransactionFailed(BattleAgentError):
    """A write failed during simulation, submission or inclusion."""

    def __init__(self, function: str, battle_id: int, reason: str, tx_hash: str | None = None):
        super().__init__(f"{function}({battle_id}) failed: {reason}")
        self.function = function
        self.battle_id = battle_id
        self.reason = reason
        self.tx_hash = tx_hash


class InvalidIntentError(BattleAgentError):
    """A cross-chain entry intent failed validation."""

    def __init__(self, issues: list[str]):
        super().__init__("; ".join(issues) or "invalid intent")
        self.issues = list(issues)


class NoRouteAvailable(BattleAgentError):
    """Every bridging candidate family was unavailable."""
