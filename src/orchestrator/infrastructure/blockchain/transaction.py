"""Transaction service for sending on-chain transactions.

Provides functionality to sign and send transactions with:
- Automatic gas estimation
- Nonce management serialised per signer
- Bounded transaction receipt waiting
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from orchestrator.core.exceptions import StepExecutionError, StepTimeoutError
from orchestrator.infrastructure.blockchain.client import EVMClient

logger = logging.getLogger(__name__)


class TransactionStatus(str, Enum):
    """Transaction execution status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class TransactionResult:
    """Result of a transaction execution."""

    tx_hash: str
    status: TransactionStatus
    block_number: int | None = None
    gas_used: int | None = None
    error: str | None = None

    def raise_for_status(self, step: str) -> str:
        """Return the tx hash if confirmed, otherwise raise a settlement error.

        Args:
            step: Settlement step name attached to the error

        Raises:
            StepTimeoutError: Submitted but not confirmed in time
            StepExecutionError: Failed to submit or reverted
        """
        if self.status == TransactionStatus.SUCCESS:
            return self.tx_hash
        if self.status == TransactionStatus.TIMEOUT:
            raise StepTimeoutError(
                self.error or "not confirmed", step=step, tx_hash=self.tx_hash or None
            )
        raise StepExecutionError(
            self.error or self.status.value,
            step=step,
            tx_hash=self.tx_hash or None,
        )


class TransactionService:
    """Service for sending on-chain transactions.

    Handles transaction signing, gas estimation, and sending. All sends
    through one service share a lock so concurrent callers cannot reuse a
    nonce on the operator account.
    """

    def __init__(
        self,
        client: EVMClient,
        private_key: str,
        gas_limit_multiplier: float = 1.2,
        gas_price_multiplier: float = 1.1,
        receipt_timeout: int = 120,
    ):
        """Initialize transaction service.

        Args:
            client: Blockchain client for sending transactions
            private_key: Private key for signing (hex string with or without 0x)
            gas_limit_multiplier: Multiplier for estimated gas limit
            gas_price_multiplier: Multiplier for gas price
            receipt_timeout: Default confirmation timeout in seconds
        """
        self.client = client
        self.gas_limit_multiplier = gas_limit_multiplier
        self.gas_price_multiplier = gas_price_multiplier
        self.receipt_timeout = receipt_timeout
        self._nonce_lock = asyncio.Lock()

        key = private_key if private_key.startswith("0x") else f"0x{private_key}"
        self.account: LocalAccount = Account.from_key(key)
        self.w3 = Web3()

        logger.info(
            f"TransactionService initialized on {client.name} for address: {self.account.address}"
        )

    @property
    def address(self) -> str:
        """Get the signer address."""
        return self.account.address

    async def send_transaction(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any],
        gas_limit: int | None = None,
        value: int = 0,
    ) -> TransactionResult:
        """Send a contract function call transaction.

        Args:
            contract_address: Target contract address
            abi: Contract ABI
            function_name: Name of function to call
            args: Function arguments
            gas_limit: Optional gas limit (will estimate if not provided)
            value: Amount of native token to send (in wei)

        Returns:
            TransactionResult with tx_hash and status
        """
        try:
            contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(contract_address),
                abi=abi,
            )
            func = contract.get_function_by_name(function_name)
            data = func(*args)._encode_transaction_data()

            async with self._nonce_lock:
                nonce = await self.client.get_transaction_count(self.account.address)
                logger.debug(f"{self.client.name} nonce: {nonce}")

                base_gas_price = await self.client.get_gas_price()
                gas_price = int(base_gas_price * self.gas_price_multiplier)

                if gas_limit is None:
                    tx_for_estimate = {
                        "from": self.account.address,
                        "to": Web3.to_checksum_address(contract_address),
                        "data": data,
                        "value": value,
                    }
                    estimated_gas = await self.client.estimate_gas(tx_for_estimate)
                    gas_limit = int(estimated_gas * self.gas_limit_multiplier)
                    logger.debug(f"Estimated gas: {estimated_gas}, using: {gas_limit}")

                tx = {
                    "to": Web3.to_checksum_address(contract_address),
                    "data": data,
                    "gas": gas_limit,
                    "gasPrice": gas_price,
                    "nonce": nonce,
                    "chainId": self.client.chain_id,
                    "value": value,
                }

                signed_tx = self.account.sign_transaction(tx)
                tx_hash = await self.client.send_raw_transaction(signed_tx.raw_transaction)

            logger.info(
                f"Transaction sent on {self.client.name}: {tx_hash}, "
                f"function: {function_name}, contract: {contract_address}"
            )

            return TransactionResult(
                tx_hash=tx_hash,
                status=TransactionStatus.PENDING,
            )

        except Exception as e:
            logger.error(f"{function_name} on {self.client.name} failed: {e}")
            return TransactionResult(
                tx_hash="",
                status=TransactionStatus.FAILED,
                error=str(e),
            )

    async def send_and_wait(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any],
        gas_limit: int | None = None,
        value: int = 0,
        timeout: int | None = None,
    ) -> TransactionResult:
        """Send transaction and wait for confirmation.

        Args:
            contract_address: Target contract address
            abi: Contract ABI
            function_name: Name of function to call
            args: Function arguments
            gas_limit: Optional gas limit
            value: Amount of native token to send
            timeout: Confirmation timeout in seconds (defaults to receipt_timeout)

        Returns:
            TransactionResult with confirmation details
        """
        timeout = timeout or self.receipt_timeout
        result = await self.send_transaction(
            contract_address=contract_address,
            abi=abi,
            function_name=function_name,
            args=args,
            gas_limit=gas_limit,
            value=value,
        )

        if result.status == TransactionStatus.FAILED:
            return result

        try:
            receipt = await self.client.wait_for_transaction_receipt(
                result.tx_hash, timeout=timeout
            )

            success = receipt.get("status") == 1
            return TransactionResult(
                tx_hash=result.tx_hash,
                status=TransactionStatus.SUCCESS if success else TransactionStatus.FAILED,
                block_number=receipt.get("blockNumber"),
                gas_used=receipt.get("gasUsed"),
                error=None if success else "Transaction reverted",
            )

        except TimeoutError:
            return TransactionResult(
                tx_hash=result.tx_hash,
                status=TransactionStatus.TIMEOUT,
                error=f"Transaction not confirmed within {timeout}s",
            )

    async def get_nonce(self) -> int:
        """Get current nonce for signer address."""
        return await self.client.get_transaction_count(self.account.address)
