from battle_agent.crosschain.cctp import CctpBridge
from battle_agent.crosschain.entry import CrossChainEntryPlanner
from battle_agent.crosschain.lifi import LiFiClient

__all__ = ["CctpBridge", "CrossChainEntryPlanner", "LiFiClient"]
