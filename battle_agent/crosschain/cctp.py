"""
Circle CCTP (native USDC bridge) helpers.

Builds call data for the approve -> depositForBurn -> receiveMessage flow
and polls the attestation service in between. Nothing here signs or sends.
"""

import logging

import requests
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from battle_agent.models import Attestation, ReadResult

logger = logging.getLogger(__name__)

APPROVE_SELECTOR = function_signature_to_4byte_selector("approve(address,uint256)")
DEPOSIT_FOR_BURN_SELECTOR = function_signature_to_4byte_selector(
    "depositForBurn(uint256,uint32,bytes32,address)"
)
RECEIVE_MESSAGE_SELECTOR = function_signature_to_4byte_selector("receiveMessage(bytes,bytes)")


def _hex_bytes(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def address_to_bytes32(address: str) -> bytes:
    """Left-pad a 20-byte address into a CCTP ``mintRecipient``."""
    raw = _hex_bytes(address)
    if len(raw) != 20:
        raise ValueError(f"not a 20-byte address: {address}")
    return raw.rjust(32, b"\x00")


class CctpBridge:
    def __init__(self, config, session: requests.Session | None = None):
        self.config = config
        self.contracts = config.CCTP_CONTRACTS
        self.attestation_url = config.ATTESTATION_API_URL.rstrip("/")
        self.timeout = config.HTTP_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def supports(self, chain: str | None) -> bool:
        return chain is not None and chain in self.contracts

    def usdc_address(self, chain: str) -> str:
        chain_id = self.config.SUPPORTED_CHAINS[chain]
        return self.config.USDC_ADDRESSES[chain_id]

    # ------------------------------------------------------------------
    # Call data
    # ------------------------------------------------------------------

    def prepare_approve_data(self, chain: str, amount: int) -> dict:
        """Step 1: let TokenMessenger spend ``amount`` USDC."""
        spender = to_checksum_address(self.contracts[chain]["token_messenger"])
        data = APPROVE_SELECTOR + abi_encode(["address", "uint256"], [spender, int(amount)])
        return {"to": self.usdc_address(chain), "data": "0x" + data.hex()}

    def prepare_deposit_for_burn_data(
        self, source_chain: str, dest_chain: str, amount: int, recipient: str
    ) -> dict:
        """Step 2: burn USDC on the source chain, minting to ``recipient`` on the destination."""
        source = self.contracts[source_chain]
        dest = self.contracts[dest_chain]
        data = DEPOSIT_FOR_BURN_SELECTOR + abi_encode(
            ["uint256", "uint32", "bytes32", "address"],
            [
                int(amount),
                dest["domain"],
                address_to_bytes32(recipient),
                to_checksum_address(self.usdc_address(source_chain)),
            ],
        )
        return {"to": source["token_messenger"], "data": "0x" + data.hex()}

    def prepare_receive_message_data(self, dest_chain: str, message, attestation) -> dict:
        """Step 4: mint on the destination once the attestation is in."""
        data = RECEIVE_MESSAGE_SELECTOR + abi_encode(
            ["bytes", "bytes"], [_hex_bytes(message), _hex_bytes(attestation)]
        )
        return {
            "to": self.contracts[dest_chain]["message_transmitter"],
            "data": "0x" + data.hex(),
        }

    def get_bridge_instructions(
        self, source_chain: str, dest_chain: str, amount: int, recipient: str
    ) -> list[dict]:
        amount_label = format_usdc(amount)
        return [
            {
                "step": 1,
                "action": "approve",
                "description": f"Approve TokenMessenger to spend {amount_label}",
                "transaction": self.prepare_approve_data(source_chain, amount),
            },
            {
                "step": 2,
                "action": "depositForBurn",
                "description": f"Burn {amount_label} on {source_chain}",
                "transaction": self.prepare_deposit_for_burn_data(
                    source_chain, dest_chain, amount, recipient
                ),
            },
            {
                "step": 3,
                "action": "waitForAttestation",
                "description": "Wait for Circle attestation (typically 10-20 minutes)",
            },
            {
                # Call data is only known after the attestation arrives.
                "step": 4,
                "action": "receiveMessage",
                "description": f"Mint {amount_label} on {dest_chain}",
            },
        ]

    # ------------------------------------------------------------------
    # Attestation service
    # ------------------------------------------------------------------

    def get_attestation(self, message_hash: str) -> ReadResult[Attestation]:
        try:
            response = self.session.get(
                f"{self.attestation_url}/{message_hash}", timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Failed to get attestation for %s: %s", message_hash, e)
            return ReadResult.unavailable(f"attestation lookup failed: {e}")

        if data.get("status") == "complete":
            return ReadResult.present(
                Attestation(status="complete", attestation=data.get("attestation") or "")
            )
        return ReadResult.present(Attestation(status=data.get("status") or "pending"))


def format_usdc(amount: int) -> str:
    whole, frac = divmod(int(amount), 10**6)
    return f"{whole}.{str(frac).zfill(6)[:2]} USDC"
