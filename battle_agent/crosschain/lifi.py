"""
LI.FI REST client: cross-chain swap + bridge routes for battle entry.

Only route discovery and status lookups happen here. Execution is left to
the user's wallet.
"""

import logging

import requests

logger = logging.getLogger(__name__)


class LiFiClient:
    """Thin wrapper over the LI.FI ``advanced/routes`` and ``status`` endpoints."""

    def __init__(self, config, session: requests.Session | None = None):
        self.base_url = config.LIFI_API_URL.rstrip("/")
        self.integrator = config.LIFI_INTEGRATOR
        self.slippage = config.LIFI_SLIPPAGE
        self.timeout = config.HTTP_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def get_routes(
        self,
        from_chain_id: int,
        to_chain_id: int,
        from_token: str,
        to_token: str,
        from_amount: int,
        user_address: str,
    ) -> list[dict]:
        """Ask LI.FI for routes, best first. Transport and HTTP errors propagate."""
        body = {
            "fromChainId": from_chain_id,
            "toChainId": to_chain_id,
            "fromTokenAddress": from_token,
            "toTokenAddress": to_token,
            "fromAmount": str(from_amount),
            "fromAddress": user_address,
            "toAddress": user_address,
            "options": {
                "slippage": self.slippage,
                "order": "RECOMMENDED",
                "integrator": self.integrator,
            },
        }
        logger.debug("Requesting LI.FI routes: %s", body)

        response = self.session.post(
            f"{self.base_url}/advanced/routes", json=body, timeout=self.timeout
        )
        response.raise_for_status()
        routes = response.json().get("routes", [])

        logger.info("Found %d LI.FI routes", len(routes))
        return routes

    def get_status(self, tx_hash: str, from_chain_id: int, to_chain_id: int) -> dict | None:
        """Status of a bridge transfer started from ``tx_hash``; None if the lookup fails."""
        try:
            response = self.session.get(
                f"{self.base_url}/status",
                params={"txHash": tx_hash, "fromChain": from_chain_id, "toChain": to_chain_id},
                timeout=self.timeout,
            )
            response.raise_for_status()
            status = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Failed to check transaction status %s: %s", tx_hash, e)
            return None

        logger.debug("Transaction %s status: %s", tx_hash, status.get("status"))
        return status


def format_amount(amount, decimals: int = 18) -> str:
    """Raw integer amount -> "123.4567" (four fractional digits)."""
    value = int(amount)
    divisor = 10**decimals
    whole, frac = divmod(value, divisor)
    return f"{whole}.{str(frac).zfill(decimals)[:4]}"


def estimate_fees(route: dict) -> str:
    """Sum of per-step fee costs in USD."""
    total = 0.0
    for step in route.get("steps", []):
        for fee in (step.get("estimate") or {}).get("feeCosts") or []:
            total += float(fee.get("amountUSD") or 0)
    return f"~${total:.2f}"
