"""Contract ABIs and read-only contract calls.

Only the fragments the orchestrator touches are declared here: the savings
vault on the source chain, the treasury manager on the destination chain,
ERC-20 USDC on both, and the CCTP v2 messenger / transmitter pair.
"""

import asyncio
import logging
from typing import Any

from eth_abi import decode
from web3 import Web3
from web3.types import TxParams

from orchestrator.infrastructure.blockchain.client import ChainClient

logger = logging.getLogger(__name__)


def _function_abi(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[str] | None = None,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t, "internalType": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t, "internalType": t} for t in outputs or []],
        "stateMutability": mutability,
    }


def _event_abi(name: str, inputs: list[tuple[str, str, bool]]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": n, "type": t, "internalType": t, "indexed": indexed}
            for n, t, indexed in inputs
        ],
    }


VAULT_ABI: list[dict[str, Any]] = [
    _event_abi(
        "BridgeToDestinationRequested",
        [("user", "address", True), ("amount", "uint256", False), ("requestId", "bytes32", True)],
    ),
    _event_abi(
        "BridgeFromDestinationRequested",
        [("requestId", "bytes32", True), ("amount", "uint256", False)],
    ),
    _function_abi("transferForBridge", [("requestId", "bytes32"), ("amount", "uint256")]),
    _function_abi(
        "confirmBridgeToDestination", [("requestId", "bytes32"), ("amount", "uint256")]
    ),
    _function_abi(
        "confirmBridgeFromDestination", [("requestId", "bytes32"), ("amount", "uint256")]
    ),
    _function_abi("completeRedemption", [("requestId", "bytes32")]),
]

TREASURY_ABI: list[dict[str, Any]] = [
    _function_abi("receiveFunds", [("amount", "uint256")]),
    _function_abi("withdrawFunds", [("amount", "uint256")]),
    _function_abi("totalDeployed", [], ["uint256"], "view"),
]

ERC20_ABI: list[dict[str, Any]] = [
    _function_abi("balanceOf", [("account", "address")], ["uint256"], "view"),
    _function_abi("allowance", [("owner", "address"), ("spender", "address")], ["uint256"], "view"),
    _function_abi("transfer", [("to", "address"), ("amount", "uint256")], ["bool"]),
    _function_abi("approve", [("spender", "address"), ("amount", "uint256")], ["bool"]),
]

TOKEN_MESSENGER_ABI: list[dict[str, Any]] = [
    _function_abi(
        "depositForBurn",
        [
            ("amount", "uint256"),
            ("destinationDomain", "uint32"),
            ("mintRecipient", "bytes32"),
            ("burnToken", "address"),
            ("destinationCaller", "bytes32"),
            ("maxFee", "uint256"),
            ("minFinalityThreshold", "uint32"),
        ],
    ),
]

MESSAGE_TRANSMITTER_ABI: list[dict[str, Any]] = [
    _function_abi("receiveMessage", [("message", "bytes"), ("attestation", "bytes")], ["bool"]),
]


class ContractManager:
    """Read-only contract calls over a chain client."""

    def __init__(self, client: ChainClient):
        """Initialize contract manager.

        Args:
            client: Blockchain client for RPC calls
        """
        self.client = client
        self.w3 = Web3()  # For encoding/decoding only

    def encode_function_call(
        self, abi: list[dict], function_name: str, args: list[Any] | None = None
    ) -> str:
        """Encode function call data.

        Args:
            abi: Contract ABI
            function_name: Name of the function to call
            args: Function arguments

        Returns:
            Encoded function call data (0x-prefixed hex)
        """
        dummy_address = "0x0000000000000000000000000000000000000000"
        contract = self.w3.eth.contract(address=dummy_address, abi=abi)
        func = contract.get_function_by_name(function_name)
        return func(*args if args else [])._encode_transaction_data()

    def decode_function_result(
        self, abi: list[dict], function_name: str, data: bytes
    ) -> Any:
        """Decode function result.

        Args:
            abi: Contract ABI
            function_name: Name of the function
            data: Raw result data

        Returns:
            Decoded result
        """
        func_abi = next(
            (
                item
                for item in abi
                if item.get("type") == "function" and item.get("name") == function_name
            ),
            None,
        )
        if not func_abi:
            raise ValueError(f"Function {function_name} not found in ABI")

        output_types = [o["type"] for o in func_abi.get("outputs", [])]
        if not output_types:
            return None

        decoded = decode(output_types, bytes(data))
        return decoded[0] if len(decoded) == 1 else decoded

    async def call_contract(
        self,
        address: str,
        abi: list[dict],
        function_name: str,
        args: list[Any] | None = None,
    ) -> Any:
        """Call contract function (read-only).

        Args:
            address: Contract address
            abi: Contract ABI
            function_name: Function name
            args: Function arguments

        Returns:
            Decoded function result
        """
        checksum_address = Web3.to_checksum_address(address)
        data = self.encode_function_call(abi, function_name, args)
        tx_params: TxParams = {"to": checksum_address, "data": data}
        result = await self.client.eth_call(tx_params)
        return self.decode_function_result(abi, function_name, result)

    async def token_balance(self, token_address: str, owner: str) -> int:
        """Get ERC-20 balance of ``owner`` in base units."""
        return await self.call_contract(
            token_address, ERC20_ABI, "balanceOf", [Web3.to_checksum_address(owner)]
        )

    async def token_balances(self, token_address: str, owners: list[str]) -> list[int]:
        """Get ERC-20 balances for several owners in parallel."""
        return list(
            await asyncio.gather(*[self.token_balance(token_address, o) for o in owners])
        )

    async def token_allowance(self, token_address: str, owner: str, spender: str) -> int:
        """Get ERC-20 allowance granted by ``owner`` to ``spender``."""
        return await self.call_contract(
            token_address,
            ERC20_ABI,
            "allowance",
            [Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)],
        )
