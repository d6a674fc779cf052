"""Pytest configuration and fixtures."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from orchestrator.core.config import Settings
from orchestrator.infrastructure.blockchain.transaction import (
    TransactionResult,
    TransactionStatus,
)
from orchestrator.infrastructure.database import (
    create_db_engine,
    create_session_factory,
    init_models,
)
from orchestrator.services.bridge.transport import (
    BridgeResult,
    BridgeState,
    BridgeStep,
    Chain,
)
from orchestrator.services.ledger.store import LedgerStore
from orchestrator.services.settlement.base import ChainContext, SettlementPolicy

OPERATOR = "0x1111111111111111111111111111111111111111"
VAULT = "0x2222222222222222222222222222222222222222"
TREASURY = "0x3333333333333333333333333333333333333333"
SOURCE_USDC = "0x4444444444444444444444444444444444444444"
DESTINATION_USDC = "0x5555555555555555555555555555555555555555"


class ScriptedTxService:
    """Stands in for TransactionService, answering from a per-function script.

    Script values may be a tx hash (confirmed), a TransactionResult, or an
    exception to raise. Unscripted functions confirm with ``0xok``.
    """

    def __init__(self, address: str = OPERATOR, script: dict[str, Any] | None = None):
        self.address = address
        self.script = script or {}
        self.calls: list[tuple[str, list[Any]]] = []

    @property
    def functions(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def send_and_wait(
        self,
        contract_address,
        abi,
        function_name,
        args,
        gas_limit=None,
        value=0,
        timeout=None,
    ) -> TransactionResult:
        self.calls.append((function_name, args))
        answer = self.script.get(function_name, "0xok")
        if isinstance(answer, list):
            answer = answer.pop(0)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, TransactionResult):
            return answer
        return TransactionResult(tx_hash=answer, status=TransactionStatus.SUCCESS)


def make_chain_context(chain: Chain, usdc_address: str, balance: int = 0) -> ChainContext:
    """Chain context with mocked client and contract reads."""
    client = MagicMock()
    client.name = chain.value
    client.get_block_number = AsyncMock(return_value=100)
    client.get_balance = AsyncMock(return_value=10**18)
    client.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1})

    contracts = MagicMock()
    contracts.token_balance = AsyncMock(return_value=balance)

    return ChainContext(
        chain=chain,
        client=client,
        tx_service=ScriptedTxService(),
        contracts=contracts,
        usdc_address=usdc_address,
    )


def bridge_success(mint_tx_hash: str = "0x2") -> BridgeResult:
    return BridgeResult(
        state=BridgeState.SUCCESS,
        steps=[
            BridgeStep(name="approve", state=BridgeState.SUCCESS),
            BridgeStep(name="burn", state=BridgeState.SUCCESS, tx_hash="0xburn"),
            BridgeStep(name="fetchAttestation", state=BridgeState.SUCCESS),
            BridgeStep(name="mint", state=BridgeState.SUCCESS, tx_hash=mint_tx_hash),
        ],
    )


@pytest.fixture
def settings(tmp_path):
    """Create settings instance for testing."""
    return Settings(
        _env_file=None,
        environment="testing",
        sqlite_path=str(tmp_path / "ledger.db"),
        vault_address=VAULT,
        treasury_address=TREASURY,
        source_usdc_address=SOURCE_USDC,
        destination_usdc_address=DESTINATION_USDC,
        api_enabled=False,
    )


@pytest_asyncio.fixture
async def ledger(settings):
    """Ledger store backed by a temporary SQLite file."""
    engine = create_db_engine(settings)
    await init_models(engine)
    yield LedgerStore(create_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def policy():
    """Settlement policy without waits."""
    return SettlementPolicy(
        max_retries=3,
        receipt_timeout=5,
        post_withdraw_delay=0,
        bridge_index_delay=0,
        bridge_receipt_timeout=1,
    )


@pytest.fixture
def source():
    return make_chain_context(Chain.SOURCE, SOURCE_USDC)


@pytest.fixture
def destination():
    return make_chain_context(Chain.DESTINATION, DESTINATION_USDC)


@pytest.fixture
def transport():
    """Bridge transport that succeeds with mint tx 0x2."""
    mock = MagicMock()
    mock.transfer = AsyncMock(return_value=bridge_success())
    return mock
