"""JSON-RPC access to one EVM chain, failing over across endpoints."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.eth import AsyncEth
from web3.exceptions import Web3RPCError
from web3.middleware import ExtraDataToPOAMiddleware
from web3.types import BlockIdentifier, TxParams, Wei

logger = logging.getLogger(__name__)


class ChainClient(ABC):
    """Read access used by the event watchers and contract helpers."""

    name: str
    chain_id: int

    @abstractmethod
    async def get_block_number(self) -> int:
        ...

    @abstractmethod
    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        address: str | list[str] | None = None,
        topics: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def eth_call(
        self, transaction: TxParams, block_identifier: BlockIdentifier = "latest"
    ) -> bytes:
        ...


class EVMClient(ChainClient):
    """EVM client over ``AsyncWeb3``.

    Each call is retried ``max_retries`` times on the preferred endpoint,
    then on every backup in turn. The endpoint that last answered becomes
    the preferred one.
    """

    def __init__(
        self,
        name: str,
        rpc_urls: list[str],
        chain_id: int,
        poa: bool = False,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        """Initialize EVM client.

        Args:
            name: Chain label used in logs
            rpc_urls: Primary RPC endpoint followed by backups
            chain_id: EVM chain ID used when signing transactions
            poa: Inject the POA extraData middleware
            max_retries: Attempts per endpoint before moving to the next
            retry_delay: Base delay between attempts, in seconds
        """
        if not rpc_urls:
            raise ValueError(f"No RPC URLs configured for {name}")
        self.name = name
        self.rpc_urls = rpc_urls
        self.chain_id = chain_id
        self.poa = poa
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._preferred = 0
        self._providers: dict[int, AsyncWeb3] = {}

    def _provider(self, index: int) -> AsyncWeb3:
        w3 = self._providers.get(index)
        if w3 is None:
            w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_urls[index]))
            if self.poa:
                w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._providers[index] = w3
        return w3

    async def _with_failover(self, label: str, call: Callable[[AsyncEth], Awaitable[Any]]) -> Any:
        """Run ``call`` against each endpoint until one answers.

        Raises:
            Web3RPCError: Every endpoint failed every attempt
        """
        last_error: Exception | None = None
        count = len(self.rpc_urls)

        for offset in range(count):
            index = (self._preferred + offset) % count
            eth = self._provider(index).eth
            for attempt in range(1, self.max_retries + 1):
                try:
                    result = await call(eth)
                except Exception as e:
                    last_error = e
                    logger.warning(
                        f"{self.name} {label} via {self.rpc_urls[index]} failed "
                        f"(attempt {attempt}/{self.max_retries}): {e}"
                    )
                    if attempt < self.max_retries:
                        await asyncio.sleep(self.retry_delay * attempt)
                    continue
                if index != self._preferred:
                    logger.info(f"{self.name}: now preferring RPC {self.rpc_urls[index]}")
                    self._preferred = index
                return result

        raise Web3RPCError(f"{self.name}: all RPCs failed {label}. Last error: {last_error}")

    async def get_block_number(self) -> int:
        return await self._with_failover("eth_blockNumber", lambda eth: eth.get_block_number())

    async def eth_call(
        self, transaction: TxParams, block_identifier: BlockIdentifier = "latest"
    ) -> bytes:
        return await self._with_failover(
            "eth_call", lambda eth: eth.call(transaction, block_identifier)
        )

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        address: str | list[str] | None = None,
        topics: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Get logs in ``[from_block, to_block]``, optionally filtered."""
        params: dict[str, Any] = {"fromBlock": from_block, "toBlock": to_block}
        if address:
            params["address"] = address
        if topics:
            params["topics"] = topics

        logs = await self._with_failover("eth_getLogs", lambda eth: eth.get_logs(params))
        return [dict(log) for log in logs]

    async def get_balance(self, address: str) -> Wei:
        """Native gas token balance."""
        return await self._with_failover("eth_getBalance", lambda eth: eth.get_balance(address))

    async def get_transaction_count(
        self, address: str, block_identifier: BlockIdentifier = "pending"
    ) -> int:
        """Next nonce for ``address``, counting pool transactions by default."""
        return await self._with_failover(
            "eth_getTransactionCount",
            lambda eth: eth.get_transaction_count(address, block_identifier),
        )

    async def estimate_gas(self, transaction: TxParams) -> int:
        return await self._with_failover(
            "eth_estimateGas", lambda eth: eth.estimate_gas(transaction)
        )

    async def get_gas_price(self) -> Wei:
        # gas_price is an awaitable property on AsyncEth
        return await self._with_failover("eth_gasPrice", lambda eth: eth.gas_price)

    async def send_raw_transaction(self, signed_tx: bytes) -> str:
        """Broadcast a signed transaction and return its 0x hash."""
        tx_hash = await self._with_failover(
            "eth_sendRawTransaction", lambda eth: eth.send_raw_transaction(signed_tx)
        )
        return AsyncWeb3.to_hex(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Receipt of ``tx_hash``, or None while it is not yet indexed."""
        try:
            receipt = await self._provider(self._preferred).eth.get_transaction_receipt(tx_hash)
        except Exception as e:
            # TransactionNotFound and transient RPC errors both mean "not yet"
            logger.debug(f"{self.name}: receipt for {tx_hash} unavailable: {e}")
            return None
        return dict(receipt) if receipt else None

    async def wait_for_transaction_receipt(
        self, tx_hash: str, timeout: float = 120, poll_latency: float = 2.0
    ) -> dict[str, Any]:
        """Poll until ``tx_hash`` is mined.

        Raises:
            TimeoutError: Not mined within ``timeout`` seconds
        """
        elapsed = 0.0
        while elapsed < timeout:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt and receipt.get("blockNumber") is not None:
                return receipt
            await asyncio.sleep(poll_latency)
            elapsed += poll_latency

        raise TimeoutError(f"{self.name}: transaction {tx_hash} not confirmed within {timeout}s")
