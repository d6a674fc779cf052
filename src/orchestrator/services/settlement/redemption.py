"""Redemption settlement pipeline.

Brings funds for a redemption back from the treasury to the savings vault:

    withdraw (treasury -> operator) -> bridge -> complete

``complete`` confirms the arrival with the vault, returns the funds into
the vault and releases the redemption to the user. Each of those calls is
recorded on its own so a retry only repeats what has not committed yet.
"""

import logging

from web3 import Web3

from orchestrator.infrastructure.blockchain.contracts import ERC20_ABI, TREASURY_ABI, VAULT_ABI
from orchestrator.services.ledger.schemas import RedemptionRecord, RedemptionStatus
from orchestrator.services.ledger.store import normalize_request_id
from orchestrator.services.settlement.base import SettlementPipeline, request_id_bytes

logger = logging.getLogger(__name__)

STATUS_RANK = {
    RedemptionStatus.WITHDRAWN: 1,
    RedemptionStatus.BRIDGED: 2,
    RedemptionStatus.COMPLETED: 3,
}


class RedemptionPipeline(SettlementPipeline[RedemptionRecord]):
    """Drives one redemption through withdraw, bridge and complete."""

    direction = "Redemption"

    async def _write(self, record: RedemptionRecord) -> RedemptionRecord:
        return await self.ledger.record_redemption(record)

    @property
    def _failed_status(self) -> RedemptionStatus:
        return RedemptionStatus.FAILED

    async def process(
        self, request_id: str, amount: int, request_tx_hash: str
    ) -> RedemptionRecord:
        """Settle a redemption intent, resuming from the ledger if seen before.

        Args:
            request_id: Vault request ID (0x bytes32)
            amount: Amount in asset base units
            request_tx_hash: Source chain tx that emitted the intent

        Returns:
            Latest ledger record for the request after this attempt
        """
        request_id = normalize_request_id(request_id)

        latest = await self.ledger.latest_redemption(request_id)
        if latest is not None and latest.is_finished(self.policy.max_retries):
            logger.info(
                f"Redemption {request_id} already processed ({latest.status.value}), skipping",
                extra={"request_id": request_id, "status": latest.status.value},
            )
            return latest

        if latest is None:
            progress = 0
            record = RedemptionRecord(
                request_id=request_id,
                amount=amount,
                request_tx_hash=request_tx_hash,
                status=RedemptionStatus.WITHDRAWN,
            )
        else:
            history = await self.ledger.redemption_history(request_id)
            progress = max((STATUS_RANK.get(e.status, 0) for e in history), default=0)
            record = latest
            logger.info(
                f"Resuming redemption {request_id} after {latest.status.value} "
                f"(retry {latest.retry_count}/{self.policy.max_retries})",
                extra={"request_id": request_id, "retry_count": latest.retry_count},
            )

        step = "withdraw"
        try:
            if progress < STATUS_RANK[RedemptionStatus.WITHDRAWN]:
                tx_hash = await self._send(
                    self.destination,
                    step,
                    self.treasury_address,
                    TREASURY_ABI,
                    "withdrawFunds",
                    [record.amount],
                )
                record = await self._write(
                    record.evolve(status=RedemptionStatus.WITHDRAWN, withdraw_tx_hash=tx_hash)
                )

            step = "bridge"
            if progress < STATUS_RANK[RedemptionStatus.BRIDGED]:
                record = await self._bridge_and_record(
                    record, RedemptionStatus.BRIDGED, self.destination, self.source
                )

            step = "complete"
            record = await self._complete(record)

        except Exception as e:
            return await self._record_failure(record, step, e)

        logger.info(
            f"Redemption {request_id} completed: {record.complete_tx_hash}",
            extra={"request_id": request_id, "tx_hash": record.complete_tx_hash},
        )
        return record

    async def resume(self, record: RedemptionRecord) -> RedemptionRecord:
        """Re-run an unfinished redemption from its ledger record."""
        return await self.process(record.request_id, record.amount, record.request_tx_hash)

    async def _complete(self, record: RedemptionRecord) -> RedemptionRecord:
        """Confirm arrival, return funds to the vault, complete the redemption."""
        request_id = request_id_bytes(record.request_id)
        vault = Web3.to_checksum_address(self.vault_address)

        if not record.confirm_tx_hash:
            tx_hash = await self._send(
                self.source,
                "complete",
                self.vault_address,
                VAULT_ABI,
                "confirmBridgeFromDestination",
                [request_id, record.amount],
            )
            record = await self._write(
                record.evolve(status=RedemptionStatus.BRIDGED, confirm_tx_hash=tx_hash)
            )

        if not record.return_tx_hash:
            await self._send(
                self.source,
                "complete",
                self.source.usdc_address,
                ERC20_ABI,
                "approve",
                [vault, record.amount],
            )
            tx_hash = await self._send(
                self.source,
                "complete",
                self.source.usdc_address,
                ERC20_ABI,
                "transfer",
                [vault, record.amount],
            )
            record = await self._write(
                record.evolve(status=RedemptionStatus.BRIDGED, return_tx_hash=tx_hash)
            )

        tx_hash = await self._send(
            self.source,
            "complete",
            self.vault_address,
            VAULT_ABI,
            "completeRedemption",
            [request_id],
        )
        return await self._write(
            record.evolve(
                status=RedemptionStatus.COMPLETED, complete_tx_hash=tx_hash, last_error=None
            )
        )
