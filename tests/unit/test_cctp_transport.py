"""Tests for the CCTP bridge transport."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from web3 import Web3

from conftest import OPERATOR, ScriptedTxService
from orchestrator.infrastructure.blockchain.transaction import (
    TransactionResult,
    TransactionStatus,
)
from orchestrator.services.bridge.cctp import (
    AttestationTimeoutError,
    CCTPBridgeTransport,
    CCTPEndpoint,
    address_to_bytes32,
)
from orchestrator.services.bridge.transport import BridgeState, Chain

IRIS = "https://iris.example.com"
TOKEN_MESSENGER = "0x7777777777777777777777777777777777777777"
MESSAGE_TRANSMITTER = "0x8888888888888888888888888888888888888888"
SOURCE_USDC = "0x4444444444444444444444444444444444444444"
DESTINATION_USDC = "0x5555555555555555555555555555555555555555"


def make_endpoint(chain: Chain, domain: int, usdc: str, allowance: int = 0) -> CCTPEndpoint:
    contracts = MagicMock()
    contracts.token_allowance = AsyncMock(return_value=allowance)
    return CCTPEndpoint(
        chain=chain,
        domain=domain,
        usdc_address=usdc,
        token_messenger=TOKEN_MESSENGER,
        message_transmitter=MESSAGE_TRANSMITTER,
        tx_service=ScriptedTxService(),
        contracts=contracts,
    )


def iris_handler(responses: list, requests: list[httpx.Request]):
    """Answer Iris requests in order, repeating the last answer."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        respond = responses.pop(0) if len(responses) > 1 else responses[0]
        return respond()

    return handler


def complete():
    return httpx.Response(
        200,
        json={"messages": [{"status": "complete", "message": "0x0102", "attestation": "0x0304"}]},
    )


def pending():
    return httpx.Response(
        200,
        json={"messages": [{"status": "pending_confirmations", "message": "0x", "attestation": "PENDING"}]},
    )


def not_found():
    return httpx.Response(404)


class TestAddressToBytes32:
    def test_left_pads(self):
        padded = address_to_bytes32(OPERATOR)
        assert len(padded) == 32
        assert padded[:12] == bytes(12)
        assert padded[12:] == bytes.fromhex(OPERATOR[2:])


class TestCCTPBridgeTransport:
    """Tests for CCTPBridgeTransport."""

    def make_transport(self, responses, allowance: int = 0, timeout: float = 1.0):
        self.requests: list[httpx.Request] = []
        self.source = make_endpoint(Chain.SOURCE, 26, SOURCE_USDC, allowance)
        self.destination = make_endpoint(Chain.DESTINATION, 0, DESTINATION_USDC)
        self.source.tx_service.script = {"approve": "0xa", "depositForBurn": "0xb"}
        self.destination.tx_service.script = {"receiveMessage": "0xm"}
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(iris_handler(list(responses), self.requests))
        )
        return CCTPBridgeTransport(
            endpoints={Chain.SOURCE: self.source, Chain.DESTINATION: self.destination},
            iris_api_url=IRIS + "/",
            max_fee=500,
            min_finality_threshold=1000,
            poll_interval=0,
            attestation_timeout=timeout,
            http_client=http_client,
        )

    @pytest.mark.asyncio
    async def test_transfer_success(self):
        """Test approve, burn, attestation and mint all succeed."""
        transport = self.make_transport([complete])

        result = await transport.transfer(5_000000, Chain.SOURCE, Chain.DESTINATION)

        assert result.state == BridgeState.SUCCESS
        assert result.is_success
        assert result.mint_tx_hash == "0xm"
        assert [s.name for s in result.steps] == [
            "approve",
            "burn",
            "fetchAttestation",
            "mint",
        ]
        await transport.close()

    @pytest.mark.asyncio
    async def test_burn_arguments(self):
        """Test depositForBurn targets the destination domain and operator."""
        transport = self.make_transport([complete])

        await transport.transfer(5_000000, Chain.SOURCE, Chain.DESTINATION)

        name, args = self.source.tx_service.calls[1]
        assert name == "depositForBurn"
        assert args == [
            5_000000,
            0,
            address_to_bytes32(OPERATOR),
            Web3.to_checksum_address(SOURCE_USDC),
            bytes(32),
            500,
            1000,
        ]
        assert self.destination.tx_service.calls == [
            ("receiveMessage", [b"\x01\x02", b"\x03\x04"])
        ]

    @pytest.mark.asyncio
    async def test_attestation_request(self):
        transport = self.make_transport([complete])

        await transport.transfer(1, Chain.SOURCE, Chain.DESTINATION)

        request = self.requests[0]
        assert request.url.path == "/v2/messages/26"
        assert request.url.params["transactionHash"] == "0xb"

    @pytest.mark.asyncio
    async def test_allowance_skips_approve(self):
        transport = self.make_transport([complete], allowance=10_000000)

        result = await transport.transfer(5_000000, Chain.SOURCE, Chain.DESTINATION)

        assert result.is_success
        assert self.source.tx_service.functions == ["depositForBurn"]

    @pytest.mark.asyncio
    async def test_polls_until_complete(self):
        """Test 404 and pending answers are polled through."""
        transport = self.make_transport([not_found, pending, complete])

        result = await transport.transfer(1, Chain.SOURCE, Chain.DESTINATION)

        assert result.is_success
        assert len(self.requests) == 3

    @pytest.mark.asyncio
    async def test_attestation_timeout(self):
        """Test a missing attestation fails without minting."""
        transport = self.make_transport([pending], timeout=0.05)

        result = await transport.transfer(1, Chain.SOURCE, Chain.DESTINATION)

        assert result.state == BridgeState.ERROR
        assert result.mint_tx_hash is None
        assert result.step("fetchAttestation").state == BridgeState.ERROR
        assert self.destination.tx_service.calls == []

    @pytest.mark.asyncio
    async def test_fetch_attestation_raises_on_timeout(self):
        transport = self.make_transport([not_found], timeout=0.05)

        with pytest.raises(AttestationTimeoutError):
            await transport.fetch_attestation(26, "0xb")

    @pytest.mark.asyncio
    async def test_burn_failure_stops(self):
        transport = self.make_transport([complete])
        self.source.tx_service.script["depositForBurn"] = TransactionResult(
            tx_hash="", status=TransactionStatus.FAILED, error="burn amount exceeds balance"
        )

        result = await transport.transfer(1, Chain.SOURCE, Chain.DESTINATION)

        assert result.state == BridgeState.ERROR
        assert result.error == "burn amount exceeds balance"
        assert self.requests == []

    @pytest.mark.asyncio
    async def test_unconfirmed_mint_is_ambiguous(self):
        """Test a mint that timed out keeps its hash for later verification."""
        transport = self.make_transport([complete])
        self.destination.tx_service.script["receiveMessage"] = TransactionResult(
            tx_hash="0xm", status=TransactionStatus.TIMEOUT, error="not confirmed within 120s"
        )

        result = await transport.transfer(1, Chain.SOURCE, Chain.DESTINATION)

        assert result.state == BridgeState.ERROR
        assert not result.is_success
        assert result.mint_tx_hash == "0xm"
        assert result.step("mint").state == BridgeState.PENDING

    @pytest.mark.asyncio
    async def test_reverse_direction(self):
        transport = self.make_transport([complete])

        await transport.transfer(1, Chain.DESTINATION, Chain.SOURCE)

        assert self.requests[0].url.path == "/v2/messages/0"
        assert self.destination.tx_service.functions == ["approve", "depositForBurn"]
        assert self.source.tx_service.functions == ["receiveMessage"]

    @pytest.mark.asyncio
    async def test_same_chain_rejected(self):
        transport = self.make_transport([complete])

        with pytest.raises(ValueError):
            await transport.transfer(1, Chain.SOURCE, Chain.SOURCE)
