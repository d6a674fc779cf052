"""Shared machinery for the settlement pipelines."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from orchestrator.core.config import Settings
from orchestrator.core.exceptions import BridgeProtocolError, StepExecutionError
from orchestrator.infrastructure.blockchain.client import EVMClient
from orchestrator.infrastructure.blockchain.contracts import ContractManager
from orchestrator.infrastructure.blockchain.transaction import TransactionService
from orchestrator.services.bridge.transport import BridgeTransport, Chain
from orchestrator.services.ledger.schemas import DepositRecord, RedemptionRecord
from orchestrator.services.ledger.store import LedgerStore
from orchestrator.services.settlement.classifier import FailureDecision, decide

logger = logging.getLogger(__name__)

RecordType = TypeVar("RecordType", DepositRecord, RedemptionRecord)


@dataclass
class ChainContext:
    """Everything a pipeline needs to act on one chain."""

    chain: Chain
    client: EVMClient
    tx_service: TransactionService
    contracts: ContractManager
    usdc_address: str

    @property
    def operator(self) -> str:
        return self.tx_service.address

    async def operator_balance(self) -> int:
        """USDC held by the operator on this chain."""
        return await self.contracts.token_balance(self.usdc_address, self.operator)


@dataclass
class SettlementPolicy:
    """Retry and verification knobs shared by both pipelines."""

    max_retries: int = 3
    receipt_timeout: int = 120
    post_withdraw_delay: float = 10.0
    bridge_index_delay: float = 30.0
    bridge_receipt_timeout: int = 60

    @classmethod
    def from_settings(cls, settings: Settings) -> "SettlementPolicy":
        return cls(
            max_retries=settings.max_retries,
            receipt_timeout=settings.receipt_timeout,
            post_withdraw_delay=settings.post_withdraw_delay,
            bridge_index_delay=settings.bridge_index_delay,
            bridge_receipt_timeout=settings.bridge_receipt_timeout,
        )


def request_id_bytes(request_id: str) -> bytes:
    """Decode a 0x bytes32 request ID for contract calls."""
    raw = bytes.fromhex(request_id[2:] if request_id.startswith("0x") else request_id)
    if len(raw) > 32:
        raise ValueError(f"request id {request_id} is longer than 32 bytes")
    return raw.rjust(32, b"\x00")


class SettlementPipeline(ABC, Generic[RecordType]):
    """Base class for the deposit and redemption state machines.

    Subclasses run their steps in order and write a ledger entry after
    each one commits. Any exception escaping a step is classified and
    recorded as a ``failed`` entry; nothing is raised to the caller.
    """

    direction: str

    def __init__(
        self,
        ledger: LedgerStore,
        transport: BridgeTransport,
        source: ChainContext,
        destination: ChainContext,
        vault_address: str,
        treasury_address: str,
        policy: SettlementPolicy | None = None,
    ):
        """Initialize pipeline.

        Args:
            ledger: Settlement ledger
            transport: Bridge transport between the two chains
            source: Source chain (savings vault)
            destination: Destination chain (treasury)
            vault_address: Savings vault address on the source chain
            treasury_address: Treasury manager address on the destination chain
            policy: Retry and verification policy
        """
        self.ledger = ledger
        self.transport = transport
        self.source = source
        self.destination = destination
        self.vault_address = vault_address
        self.treasury_address = treasury_address
        self.policy = policy or SettlementPolicy()

    @abstractmethod
    async def _write(self, record: RecordType) -> RecordType:
        """Append ``record`` to this pipeline's ledger."""
        ...

    @property
    @abstractmethod
    def _failed_status(self) -> Any:
        ...

    async def _send(
        self,
        chain: ChainContext,
        step: str,
        contract_address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any],
    ) -> str:
        """Send a transaction and wait for it; return its hash or raise."""
        result = await chain.tx_service.send_and_wait(
            contract_address=contract_address,
            abi=abi,
            function_name=function_name,
            args=args,
            timeout=self.policy.receipt_timeout,
        )
        return result.raise_for_status(step)

    async def _bridge_and_record(
        self, record: RecordType, bridged_status: Any, sender: ChainContext, receiver: ChainContext
    ) -> RecordType:
        """Bridge the record's amount and append the ``bridged`` entry.

        Once a transfer has been attempted, nothing in this step may be retried:
        a failed ledger write here is raised as ``BridgeProtocolError`` so the
        request is abandoned instead of bridged a second time.
        """
        mint_tx_hash = await self._bridge(record.request_id, record.amount, sender, receiver)
        try:
            return await self._write(
                record.evolve(status=bridged_status, bridge_tx_hash=mint_tx_hash)
            )
        except Exception as e:
            raise BridgeProtocolError(
                f"transfer minted {mint_tx_hash} but the ledger write failed: {e}",
                step="bridge",
                tx_hash=mint_tx_hash,
            ) from e

    async def _bridge(
        self, request_id: str, amount: int, sender: ChainContext, receiver: ChainContext
    ) -> str:
        """Bridge ``amount`` and verify it landed; return the mint tx hash.

        Raises:
            BridgeProtocolError: Transfer failed or could not be verified
        """
        try:
            balance_before = await receiver.operator_balance()
        except Exception as e:
            raise StepExecutionError(
                f"could not read receiving balance before transfer: {e}", step="bridge"
            ) from e

        try:
            result = await self.transport.transfer(amount, sender.chain, receiver.chain)
        except Exception as e:
            raise BridgeProtocolError(f"bridge transfer raised: {e}", step="bridge") from e

        if result.is_success:
            return result.mint_tx_hash

        mint_tx_hash = result.mint_tx_hash
        if not mint_tx_hash:
            raise BridgeProtocolError(
                f"bridge transfer failed: {result.error or result.state.value}", step="bridge"
            )

        logger.warning(
            f"Bridge outcome for {request_id} ambiguous, verifying mint {mint_tx_hash}",
            extra={"request_id": request_id, "step": "bridge", "tx_hash": mint_tx_hash},
        )
        await self._verify_mint(request_id, amount, mint_tx_hash, receiver, balance_before)
        return mint_tx_hash

    async def _verify_mint(
        self,
        request_id: str,
        amount: int,
        mint_tx_hash: str,
        receiver: ChainContext,
        balance_before: int,
    ) -> None:
        """Resolve an ambiguous mint by receipt, then by balance."""
        await asyncio.sleep(self.policy.bridge_index_delay)

        try:
            receipt = await receiver.client.wait_for_transaction_receipt(
                mint_tx_hash, timeout=self.policy.bridge_receipt_timeout
            )
        except TimeoutError:
            receipt = None

        if receipt is not None:
            if receipt.get("status") == 1:
                logger.info(f"Mint {mint_tx_hash} confirmed by receipt")
                return
            raise BridgeProtocolError(
                f"mint {mint_tx_hash} reverted", step="bridge", tx_hash=mint_tx_hash
            )

        try:
            balance_after = await receiver.operator_balance()
        except Exception as e:
            raise BridgeProtocolError(
                f"mint {mint_tx_hash} unverifiable: {e}", step="bridge", tx_hash=mint_tx_hash
            ) from e

        if balance_after - balance_before >= amount:
            logger.info(
                f"Mint {mint_tx_hash} confirmed by balance ({balance_before} -> {balance_after})",
                extra={"request_id": request_id, "step": "bridge"},
            )
            return

        raise BridgeProtocolError(
            f"mint {mint_tx_hash} not confirmed: balance {balance_before} -> {balance_after}, "
            f"expected +{amount}",
            step="bridge",
            tx_hash=mint_tx_hash,
        )

    async def _record_failure(
        self, record: RecordType, step: str, exc: Exception
    ) -> RecordType:
        """Classify ``exc`` and append a failed entry carrying the decision."""
        decision: FailureDecision = decide(exc, record.retry_count, self.policy.max_retries)
        failed = record.evolve(
            status=self._failed_status,
            retry_count=decision.retry_count,
            last_error=f"{step}: {exc}"[:2000],
        )
        stored = await self._write(failed)

        log = logger.error if decision.permanent else logger.warning
        log(
            f"{self.direction} {record.request_id} failed at {step} "
            f"({decision.failure_class.value}, attempt {decision.retry_count}/"
            f"{self.policy.max_retries}): {exc}",
            extra={
                "request_id": record.request_id,
                "step": step,
                "retry_count": decision.retry_count,
                "failure_class": decision.failure_class.value,
                "permanent": decision.permanent,
            },
        )
        return stored
