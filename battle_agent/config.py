import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from battle_agent.errors import ConfigError

# Load .env into os.environ BEFORE reading any env-backed settings.
# override=False means Docker/shell env vars take precedence over .env.
load_dotenv(Path.cwd() / ".env", override=False)

# Arbitrum Sepolia (chain ID 421614)
RPC_URL = os.environ.get("RPC_URL", "https://sepolia-rollup.arbitrum.io/rpc")
CHAIN_ID = int(os.environ.get("CHAIN_ID", "421614"))
CHAIN_NAME = os.environ.get("CHAIN_NAME", "Arbitrum Sepolia")
EXPLORER_TX_URL = os.environ.get("EXPLORER_TX_URL", "https://sepolia.arbiscan.io/tx/")

# Agent wallet
PRIVATE_KEY = os.environ.get("PRIVATE_KEY", "")

# Contracts
BATTLE_ARENA_ADDRESS = os.environ.get("BATTLE_ARENA_ADDRESS", "")
POOL_MANAGER = os.environ.get("POOL_MANAGER", "")

# V4 PoolManager: mapping(PoolId => Pool.State) pools lives at slot 6.
# Pool.State word 0 = slot0, word 3 = liquidity.
POOLS_MAPPING_SLOT = 6
LIQUIDITY_OFFSET = 3

# Agent params
POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "30"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
MONITOR_WORKERS = int(os.environ.get("MONITOR_WORKERS", "8"))

# Per-call timeouts. A timed-out call only aborts that call.
RPC_TIMEOUT_SECONDS = float(os.environ.get("RPC_TIMEOUT_SECONDS", "20"))
HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "15"))
RECEIPT_TIMEOUT_SECONDS = float(os.environ.get("RECEIPT_TIMEOUT_SECONDS", "120"))

WRITE_GAS_LIMIT = int(os.environ.get("WRITE_GAS_LIMIT", "500000"))

# Off-chain services
LIFI_API_URL = os.environ.get("LIFI_API_URL", "https://li.quest/v1")
LIFI_INTEGRATOR = os.environ.get("LIFI_INTEGRATOR", "lp-battlevault")
LIFI_SLIPPAGE = float(os.environ.get("LIFI_SLIPPAGE", "0.03"))
ATTESTATION_API_URL = os.environ.get(
    "ATTESTATION_API_URL", "https://iris-api.circle.com/attestations"
)

# Outputs
JOURNAL_PATH = os.environ.get(
    "JOURNAL_PATH", str(Path.cwd() / "decisions" / "decisions.jsonl")
)
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.environ.get("SERVER_PORT", "3001"))

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Token decimals
USDC_DECIMALS = 6
MIN_ENTRY_AMOUNT = 10 * 10**USDC_DECIMALS  # below this, fees dominate
DEFAULT_BATTLE_DURATION = 86_400

SUPPORTED_CHAINS = {
    "ETHEREUM": 1,
    "OPTIMISM": 10,
    "POLYGON": 137,
    "BASE": 8453,
    "ARBITRUM": 42161,
    # Testnets
    "BASE_SEPOLIA": 84532,
    "ARBITRUM_SEPOLIA": 421614,
    "SEPOLIA": 11155111,
}

# Canonical (natively bridgeable) USDC per chain
USDC_ADDRESSES = {
    1: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    10: "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
    137: "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
    8453: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    42161: "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
    84532: "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    421614: "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
    11155111: "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
}

# Circle CCTP contracts, keyed by SUPPORTED_CHAINS name
CCTP_CONTRACTS = {
    "ETHEREUM": {
        "token_messenger": "0xBd3fa81B58Ba92a82136038B25aDec7066af3155",
        "message_transmitter": "0x0a992d191DEeC32aFe36203Ad87D7d289a738F81",
        "domain": 0,
    },
    "OPTIMISM": {
        "token_messenger": "0x2B4069517957735bE00ceE0fadAE88a26365528f",
        "message_transmitter": "0x4D41f22c5a0e5c74090899E5a8Fb597a8842b3e8",
        "domain": 2,
    },
    "ARBITRUM": {
        "token_messenger": "0x19330d10D9Cc8751218eaf51E8885D058642E08A",
        "message_transmitter": "0xC30362313FBBA5cf9163F0bb16a0e01f01A896ca",
        "domain": 3,
    },
    "BASE": {
        "token_messenger": "0x1682Ae6375C4E4A97e4B583BC394c861A46D8962",
        "message_transmitter": "0xAD09780d193884d503182aD4588450C416D6F9D4",
        "domain": 6,
    },
    "POLYGON": {
        "token_messenger": "0x9daF8c91AEFAE50b9c0E69629D3F6Ca40cA3B3FE",
        "message_transmitter": "0xF3be9355363857F3e001be68856A2f96b4C39Ba9",
        "domain": 7,
    },
    # Testnets
    "SEPOLIA": {
        "token_messenger": "0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5",
        "message_transmitter": "0x7865fAfC2db2093669d92c0F33AeEF291086BEFD",
        "domain": 0,
    },
    "ARBITRUM_SEPOLIA": {
        "token_messenger": "0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5",
        "message_transmitter": "0xaCF1ceeF35caAc005e15888dDb8A3515C41B4872",
        "domain": 3,
    },
    "BASE_SEPOLIA": {
        "token_messenger": "0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5",
        "message_transmitter": "0x7865fAfC2db2093669d92c0F33AeEF291086BEFD",
        "domain": 6,
    },
}

# Rough per-action gas used by the execution planner
GAS_ESTIMATES = {
    "approve": 50_000,
    "depositForBurn": 150_000,
    "receiveMessage": 200_000,
    "swap": 200_000,
    "addLiquidity": 300_000,
    "createBattle": 200_000,
    "joinBattle": 150_000,
}
DEFAULT_GAS_ESTIMATE = 100_000


def chain_name(chain_id: int) -> str | None:
    for name, cid in SUPPORTED_CHAINS.items():
        if cid == chain_id:
            return name
    return None


def validate_config(cfg=None) -> None:
    """Raise ConfigError if a setting required for signing is missing."""
    cfg = cfg if cfg is not None else sys.modules[__name__]
    missing = [
        key
        for key in ("PRIVATE_KEY", "BATTLE_ARENA_ADDRESS", "RPC_URL")
        if not getattr(cfg, key, "")
    ]
    if missing:
        raise ConfigError(f"Missing required config: {', '.join(missing)}")
