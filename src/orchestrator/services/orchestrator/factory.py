"""Builders that wire settings into chain, bridge and ledger components."""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from orchestrator.core.config import Settings
from orchestrator.infrastructure.blockchain.client import EVMClient
from orchestrator.infrastructure.blockchain.contracts import ContractManager
from orchestrator.infrastructure.blockchain.transaction import TransactionService
from orchestrator.infrastructure.database.session import (
    create_db_engine,
    create_session_factory,
    init_models,
)
from orchestrator.services.bridge.cctp import CCTPBridgeTransport, CCTPEndpoint
from orchestrator.services.bridge.transport import Chain
from orchestrator.services.ledger.store import LedgerStore
from orchestrator.services.settlement.base import ChainContext

logger = logging.getLogger(__name__)


def create_clients(settings: Settings) -> tuple[EVMClient, EVMClient]:
    """Create read clients for the source and destination chains."""
    source = EVMClient(
        name=settings.source_chain_name,
        rpc_urls=settings.source_rpc_urls,
        chain_id=settings.source_chain_id,
        poa=settings.source_poa,
    )
    destination = EVMClient(
        name=settings.destination_chain_name,
        rpc_urls=settings.destination_rpc_urls,
        chain_id=settings.destination_chain_id,
        poa=settings.destination_poa,
    )
    return source, destination


def create_chain_contexts(
    settings: Settings,
    clients: tuple[EVMClient, EVMClient] | None = None,
) -> tuple[ChainContext, ChainContext]:
    """Create signing contexts for both chains.

    Raises:
        ConfigurationError: No operator key configured
    """
    private_key = settings.require_operator_key()
    source_client, destination_client = clients or create_clients(settings)

    def context(chain: Chain, client: EVMClient, usdc_address: str) -> ChainContext:
        return ChainContext(
            chain=chain,
            client=client,
            tx_service=TransactionService(
                client, private_key, receipt_timeout=settings.receipt_timeout
            ),
            contracts=ContractManager(client),
            usdc_address=usdc_address,
        )

    return (
        context(Chain.SOURCE, source_client, settings.source_usdc_address),
        context(Chain.DESTINATION, destination_client, settings.destination_usdc_address),
    )


def create_transport(
    settings: Settings, source: ChainContext, destination: ChainContext
) -> CCTPBridgeTransport:
    """Create the CCTP transport over both chain contexts."""
    domains = {
        Chain.SOURCE: settings.cctp_source_domain,
        Chain.DESTINATION: settings.cctp_destination_domain,
    }
    endpoints = {
        ctx.chain: CCTPEndpoint(
            chain=ctx.chain,
            domain=domains[ctx.chain],
            usdc_address=ctx.usdc_address,
            token_messenger=settings.cctp_token_messenger,
            message_transmitter=settings.cctp_message_transmitter,
            tx_service=ctx.tx_service,
            contracts=ctx.contracts,
        )
        for ctx in (source, destination)
    }
    return CCTPBridgeTransport(
        endpoints=endpoints,
        iris_api_url=settings.cctp_iris_api_url,
        max_fee=settings.cctp_max_fee,
        min_finality_threshold=settings.cctp_min_finality_threshold,
        poll_interval=settings.cctp_attestation_poll_interval,
        attestation_timeout=settings.cctp_attestation_timeout,
    )


async def create_ledger(settings: Settings) -> tuple[AsyncEngine, LedgerStore]:
    """Open the ledger database, creating tables if needed."""
    engine = create_db_engine(settings)
    await init_models(engine)
    logger.info(f"Ledger ready ({settings.db_driver})")
    return engine, LedgerStore(create_session_factory(engine))
