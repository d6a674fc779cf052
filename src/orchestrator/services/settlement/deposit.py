"""Deposit settlement pipeline.

Moves a deposit intent from the savings vault on the source chain into the
treasury on the destination chain:

    withdraw (vault -> operator) -> bridge -> confirm -> deploy (-> treasury)

A ledger entry is written after every step that commits on chain, before
the next step starts, so a restarted process resumes after the last
committed step instead of repeating it.
"""

import asyncio
import logging

from web3 import Web3

from orchestrator.infrastructure.blockchain.contracts import ERC20_ABI, TREASURY_ABI, VAULT_ABI
from orchestrator.services.ledger.schemas import DepositRecord, DepositStatus
from orchestrator.services.ledger.store import normalize_request_id
from orchestrator.services.settlement.base import SettlementPipeline, request_id_bytes

logger = logging.getLogger(__name__)

# Progress rank of each status; failed entries carry no progress of their own
STATUS_RANK = {
    DepositStatus.WITHDRAWN: 1,
    DepositStatus.BRIDGED: 2,
    DepositStatus.DEPLOYED: 3,
}


class DepositPipeline(SettlementPipeline[DepositRecord]):
    """Drives one deposit through withdraw, bridge, confirm and deploy."""

    direction = "Deposit"

    async def _write(self, record: DepositRecord) -> DepositRecord:
        return await self.ledger.record_deposit(record)

    @property
    def _failed_status(self) -> DepositStatus:
        return DepositStatus.FAILED

    async def process(
        self, user: str, amount: int, request_id: str, source_tx_hash: str
    ) -> DepositRecord:
        """Settle a deposit intent, resuming from the ledger if seen before.

        Args:
            user: Depositor address
            amount: Amount in asset base units
            request_id: Vault request ID (0x bytes32)
            source_tx_hash: Source chain tx that emitted the intent

        Returns:
            Latest ledger record for the request after this attempt
        """
        request_id = normalize_request_id(request_id)

        latest = await self.ledger.latest_deposit(request_id)
        if latest is not None and latest.is_finished(self.policy.max_retries):
            logger.info(
                f"Deposit {request_id} already processed ({latest.status.value}), skipping",
                extra={"request_id": request_id, "status": latest.status.value},
            )
            return latest

        if latest is None:
            progress = 0
            record = DepositRecord(
                request_id=request_id,
                user=user,
                amount=amount,
                source_tx_hash=source_tx_hash,
                status=DepositStatus.WITHDRAWN,
            )
        else:
            history = await self.ledger.deposit_history(request_id)
            progress = max((STATUS_RANK.get(e.status, 0) for e in history), default=0)
            record = latest
            if latest.amount != amount:
                logger.warning(
                    f"Deposit {request_id} event amount {amount} differs from ledger "
                    f"amount {latest.amount}; using ledger amount"
                )
            logger.info(
                f"Resuming deposit {request_id} after {latest.status.value} "
                f"(retry {latest.retry_count}/{self.policy.max_retries})",
                extra={"request_id": request_id, "retry_count": latest.retry_count},
            )

        step = "withdraw"
        try:
            if progress < STATUS_RANK[DepositStatus.WITHDRAWN]:
                record = await self._withdraw(record)

            step = "bridge"
            if progress < STATUS_RANK[DepositStatus.BRIDGED]:
                record = await self._bridge_and_record(
                    record, DepositStatus.BRIDGED, self.source, self.destination
                )

            step = "confirm"
            if not record.confirm_tx_hash:
                record = await self._confirm(record)

            step = "deploy"
            record = await self._deploy(record)

        except Exception as e:
            return await self._record_failure(record, step, e)

        logger.info(
            f"Deposit {request_id} deployed: {record.destination_tx_hash}",
            extra={"request_id": request_id, "tx_hash": record.destination_tx_hash},
        )
        return record

    async def resume(self, record: DepositRecord) -> DepositRecord:
        """Re-run an unfinished deposit from its ledger record."""
        return await self.process(
            record.user, record.amount, record.request_id, record.source_tx_hash
        )

    async def _withdraw(self, record: DepositRecord) -> DepositRecord:
        """Pull the deposit out of the vault into operator custody."""
        tx_hash = await self._send(
            self.source,
            "withdraw",
            self.vault_address,
            VAULT_ABI,
            "transferForBridge",
            [request_id_bytes(record.request_id), record.amount],
        )
        record = await self._write(
            record.evolve(status=DepositStatus.WITHDRAWN, withdraw_tx_hash=tx_hash)
        )
        if self.policy.post_withdraw_delay > 0:
            await asyncio.sleep(self.policy.post_withdraw_delay)
        return record

    async def _confirm(self, record: DepositRecord) -> DepositRecord:
        """Tell the vault the funds reached the destination chain."""
        tx_hash = await self._send(
            self.source,
            "confirm",
            self.vault_address,
            VAULT_ABI,
            "confirmBridgeToDestination",
            [request_id_bytes(record.request_id), record.amount],
        )
        return await self._write(
            record.evolve(status=DepositStatus.BRIDGED, confirm_tx_hash=tx_hash)
        )

    async def _deploy(self, record: DepositRecord) -> DepositRecord:
        """Fund the treasury and let it deploy the amount."""
        if not record.fund_tx_hash:
            fund_tx_hash = await self._send(
                self.destination,
                "deploy",
                self.destination.usdc_address,
                ERC20_ABI,
                "transfer",
                [Web3.to_checksum_address(self.treasury_address), record.amount],
            )
            record = await self._write(
                record.evolve(status=DepositStatus.BRIDGED, fund_tx_hash=fund_tx_hash)
            )

        tx_hash = await self._send(
            self.destination,
            "deploy",
            self.treasury_address,
            TREASURY_ABI,
            "receiveFunds",
            [record.amount],
        )
        return await self._write(
            record.evolve(
                status=DepositStatus.DEPLOYED, destination_tx_hash=tx_hash, last_error=None
            )
        )
