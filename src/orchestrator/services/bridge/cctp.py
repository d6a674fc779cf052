"""Circle CCTP v2 bridge transport.

Burn on the sending chain through TokenMessengerV2, poll Circle's Iris API
for the attestation, then mint on the receiving chain through
MessageTransmitterV2.
"""

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx
from web3 import Web3

from orchestrator.infrastructure.blockchain.contracts import (
    ERC20_ABI,
    MESSAGE_TRANSMITTER_ABI,
    TOKEN_MESSENGER_ABI,
    ContractManager,
)
from orchestrator.infrastructure.blockchain.transaction import (
    TransactionResult,
    TransactionService,
    TransactionStatus,
)
from orchestrator.services.bridge.transport import (
    BridgeResult,
    BridgeState,
    BridgeStep,
    BridgeTransport,
    Chain,
)

logger = logging.getLogger(__name__)

EMPTY_BYTES32 = bytes(32)


@dataclass
class CCTPEndpoint:
    """Per-chain CCTP wiring."""

    chain: Chain
    domain: int
    usdc_address: str
    token_messenger: str
    message_transmitter: str
    tx_service: TransactionService
    contracts: ContractManager


def address_to_bytes32(address: str) -> bytes:
    """Left-pad a 20-byte address to bytes32."""
    return bytes(12) + bytes.fromhex(Web3.to_checksum_address(address)[2:])


class AttestationTimeoutError(Exception):
    """Iris did not return a complete attestation in time."""


class CCTPBridgeTransport(BridgeTransport):
    """Bridge transport backed by Circle CCTP v2."""

    def __init__(
        self,
        endpoints: dict[Chain, CCTPEndpoint],
        iris_api_url: str,
        max_fee: int = 0,
        min_finality_threshold: int = 2000,
        poll_interval: float = 5.0,
        attestation_timeout: float = 1800.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize CCTP transport.

        Args:
            endpoints: CCTP wiring for both chains
            iris_api_url: Iris API base URL (sandbox for testnets)
            max_fee: Maximum fee passed to depositForBurn
            min_finality_threshold: Finality threshold passed to depositForBurn
            poll_interval: Seconds between attestation polls
            attestation_timeout: Maximum seconds to wait for an attestation
            http_client: Optional HTTP client (created lazily otherwise)
        """
        self.endpoints = endpoints
        self.iris_api_url = iris_api_url.rstrip("/")
        self.max_fee = max_fee
        self.min_finality_threshold = min_finality_threshold
        self.poll_interval = poll_interval
        self.attestation_timeout = attestation_timeout
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def transfer(self, amount: int, source: Chain, destination: Chain) -> BridgeResult:
        """Burn on ``source``, wait for attestation, mint on ``destination``."""
        if source == destination:
            raise ValueError("source and destination chains must differ")

        src = self.endpoints[source]
        dst = self.endpoints[destination]
        steps: list[BridgeStep] = []

        logger.info(f"CCTP transfer {amount} {source.value} -> {destination.value}")

        # Approve
        approve = await self._approve(src, amount)
        steps.append(approve)
        if approve.state != BridgeState.SUCCESS:
            return BridgeResult(state=BridgeState.ERROR, steps=steps)

        # Burn
        burn_result = await src.tx_service.send_and_wait(
            contract_address=src.token_messenger,
            abi=TOKEN_MESSENGER_ABI,
            function_name="depositForBurn",
            args=[
                amount,
                dst.domain,
                address_to_bytes32(dst.tx_service.address),
                Web3.to_checksum_address(src.usdc_address),
                EMPTY_BYTES32,
                self.max_fee,
                self.min_finality_threshold,
            ],
        )
        burn = self._step_from_tx("burn", burn_result)
        steps.append(burn)
        if burn.state != BridgeState.SUCCESS:
            return BridgeResult(state=BridgeState.ERROR, steps=steps)

        # Attestation
        try:
            message, attestation = await self.fetch_attestation(src.domain, burn.tx_hash)
        except Exception as e:
            logger.error(f"CCTP attestation for burn {burn.tx_hash} failed: {e}")
            steps.append(
                BridgeStep(name="fetchAttestation", state=BridgeState.ERROR, error=str(e))
            )
            return BridgeResult(state=BridgeState.ERROR, steps=steps)
        steps.append(BridgeStep(name="fetchAttestation", state=BridgeState.SUCCESS))

        # Mint
        mint_result = await dst.tx_service.send_and_wait(
            contract_address=dst.message_transmitter,
            abi=MESSAGE_TRANSMITTER_ABI,
            function_name="receiveMessage",
            args=[_hex_bytes(message), _hex_bytes(attestation)],
        )
        mint = self._step_from_tx("mint", mint_result)
        steps.append(mint)

        state = BridgeState.SUCCESS if mint.state == BridgeState.SUCCESS else BridgeState.ERROR
        logger.info(
            f"CCTP transfer {source.value} -> {destination.value} finished: {state.value}, "
            f"burn={burn.tx_hash} mint={mint.tx_hash}"
        )
        return BridgeResult(state=state, steps=steps)

    async def _approve(self, endpoint: CCTPEndpoint, amount: int) -> BridgeStep:
        """Approve the token messenger if the current allowance is short."""
        try:
            allowance = await endpoint.contracts.token_allowance(
                endpoint.usdc_address, endpoint.tx_service.address, endpoint.token_messenger
            )
        except Exception as e:
            return BridgeStep(name="approve", state=BridgeState.ERROR, error=str(e))

        if allowance >= amount:
            logger.debug(f"Allowance {allowance} covers {amount}, skipping approve")
            return BridgeStep(name="approve", state=BridgeState.SUCCESS)

        result = await endpoint.tx_service.send_and_wait(
            contract_address=endpoint.usdc_address,
            abi=ERC20_ABI,
            function_name="approve",
            args=[Web3.to_checksum_address(endpoint.token_messenger), amount],
        )
        return self._step_from_tx("approve", result)

    async def fetch_attestation(self, source_domain: int, burn_tx_hash: str) -> tuple[str, str]:
        """Poll Iris until the burn message is attested.

        Args:
            source_domain: CCTP domain of the burn chain
            burn_tx_hash: depositForBurn transaction hash

        Returns:
            (message, attestation) as 0x hex strings

        Raises:
            AttestationTimeoutError: Not attested within the timeout
        """
        client = await self._get_http_client()
        url = f"{self.iris_api_url}/v2/messages/{source_domain}"
        deadline = time.monotonic() + self.attestation_timeout
        attempt = 0

        while time.monotonic() < deadline:
            attempt += 1
            try:
                response = await client.get(url, params={"transactionHash": burn_tx_hash})
                if response.status_code == 200:
                    messages = response.json().get("messages") or []
                    if messages:
                        entry = messages[0]
                        status = str(entry.get("status", "")).lower()
                        message = entry.get("message")
                        attestation = entry.get("attestation")
                        if (
                            status == "complete"
                            and message
                            and attestation
                            and str(attestation).lower() != "pending"
                        ):
                            logger.info(f"Attestation ready after {attempt} polls")
                            return message, attestation
                        logger.debug(f"Attestation pending (status={status!r})")
                elif response.status_code != 404:
                    logger.warning(
                        f"Iris returned HTTP {response.status_code} for {burn_tx_hash}"
                    )
            except httpx.HTTPError as e:
                logger.warning(f"Iris request failed (attempt {attempt}): {e}")

            await asyncio.sleep(self.poll_interval)

        raise AttestationTimeoutError(
            f"attestation for {burn_tx_hash} not ready within {self.attestation_timeout}s"
        )

    @staticmethod
    def _step_from_tx(name: str, result: TransactionResult) -> BridgeStep:
        if result.status == TransactionStatus.SUCCESS:
            return BridgeStep(name=name, state=BridgeState.SUCCESS, tx_hash=result.tx_hash)
        if result.status == TransactionStatus.TIMEOUT:
            return BridgeStep(
                name=name, state=BridgeState.PENDING, tx_hash=result.tx_hash, error=result.error
            )
        return BridgeStep(
            name=name,
            state=BridgeState.ERROR,
            tx_hash=result.tx_hash or None,
            error=result.error,
        )


def _hex_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)
