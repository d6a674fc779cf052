"""Application configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from orchestrator.core.exceptions import ConfigurationError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Orchestrator settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="vault-orchestrator", description="Application name")
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development", description="Runtime environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log output format"
    )

    # Ledger database
    db_driver: Literal["sqlite", "postgresql"] = Field(
        default="sqlite", description="Ledger database backend"
    )
    sqlite_path: str = Field(
        default="./data/ledger.db", description="SQLite ledger file path"
    )
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_user: str = Field(default="postgres", description="PostgreSQL user")
    db_password: str = Field(default="postgres", description="PostgreSQL password")
    db_name: str = Field(default="settlement", description="PostgreSQL database name")

    # Source chain (hosts the savings vault, emits intents)
    source_chain_name: str = Field(default="Arc_Testnet", description="Source chain label")
    source_chain_id: int = Field(default=5042002, description="Source chain ID")
    source_rpc_url: str = Field(
        default="https://rpc.testnet.arc.network",
        description="Source chain RPC endpoint",
    )
    source_backup_rpc_urls: list[str] = Field(
        default=[], description="Backup source chain RPC endpoints"
    )
    source_poa: bool = Field(
        default=False, description="Inject POA extraData middleware for source chain"
    )

    # Destination chain (hosts the treasury / yield venue)
    destination_chain_name: str = Field(
        default="Ethereum_Sepolia", description="Destination chain label"
    )
    destination_chain_id: int = Field(default=11155111, description="Destination chain ID")
    destination_rpc_url: str = Field(
        default="https://ethereum-sepolia-rpc.publicnode.com",
        description="Destination chain RPC endpoint",
    )
    destination_backup_rpc_urls: list[str] = Field(
        default=["https://rpc.sepolia.org"],
        description="Backup destination chain RPC endpoints",
    )
    destination_poa: bool = Field(
        default=False, description="Inject POA extraData middleware for destination chain"
    )

    # Contract addresses
    vault_address: str = Field(
        default=ZERO_ADDRESS, description="Savings vault address on the source chain"
    )
    treasury_address: str = Field(
        default=ZERO_ADDRESS, description="Treasury manager address on the destination chain"
    )
    source_usdc_address: str = Field(
        default="0x3600000000000000000000000000000000000000",
        description="USDC address on the source chain",
    )
    destination_usdc_address: str = Field(
        default="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        description="USDC address on the destination chain",
    )
    asset_decimals: int = Field(default=6, description="Settlement asset decimals")

    # Operator signing key (same key on both chains)
    operator_private_key: str = Field(
        default="", description="Operator private key used on both chains"
    )

    # CCTP v2 bridge transport
    cctp_token_messenger: str = Field(
        default="0x8FE6B999Dc680CcFDD5Bf7EB0974218be2542DAA",
        description="TokenMessengerV2 address (testnet)",
    )
    cctp_message_transmitter: str = Field(
        default="0xE737e5cEBEEBa77EFE34D4aa090756590b1CE275",
        description="MessageTransmitterV2 address (testnet)",
    )
    cctp_source_domain: int = Field(default=26, description="CCTP domain of the source chain")
    cctp_destination_domain: int = Field(
        default=0, description="CCTP domain of the destination chain"
    )
    cctp_iris_api_url: str = Field(
        default="https://iris-api-sandbox.circle.com",
        description="Circle Iris attestation API base URL",
    )
    cctp_min_finality_threshold: int = Field(
        default=2000, description="Finality threshold passed to depositForBurn"
    )
    cctp_max_fee: int = Field(
        default=0, description="Maximum CCTP fee in asset base units"
    )
    cctp_attestation_poll_interval: float = Field(
        default=5.0, description="Seconds between Iris attestation polls"
    )
    cctp_attestation_timeout: float = Field(
        default=1800.0, description="Maximum seconds to wait for an attestation"
    )

    # Watchers
    poll_interval: float = Field(default=10.0, description="Seconds between polls")
    backfill_blocks: int = Field(
        default=5000, description="Historical window re-scanned on startup"
    )
    max_blocks_per_query: int = Field(
        default=9999, description="Maximum block span of one eth_getLogs call"
    )
    confirmation_blocks: int = Field(
        default=0, description="Blocks to lag behind head before scanning"
    )
    queue_size: int = Field(default=100, description="Pending events per direction")

    # Settlement policy
    max_retries: int = Field(default=3, description="Maximum attempts per request")
    receipt_timeout: int = Field(
        default=120, description="Seconds to wait for a transaction receipt"
    )
    post_withdraw_delay: float = Field(
        default=10.0, description="Seconds to wait after a vault withdrawal before bridging"
    )
    bridge_index_delay: float = Field(
        default=30.0, description="Seconds to wait before checking an ambiguous mint"
    )
    bridge_receipt_timeout: int = Field(
        default=60, description="Seconds to wait for an ambiguous mint receipt"
    )
    retry_sweep_interval: float = Field(
        default=300.0, description="Seconds between retry sweeps (0 disables)"
    )

    # Status API
    api_enabled: bool = Field(default=True, description="Serve the status API")
    api_host: str = Field(default="127.0.0.1", description="Status API bind host")
    api_port: int = Field(default=8080, description="Status API bind port")
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct async database URL for the ledger."""
        if self.db_driver == "sqlite":
            return f"sqlite+aiosqlite:///{self.sqlite_path}"
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def source_rpc_urls(self) -> list[str]:
        """Primary plus backup RPC URLs for the source chain."""
        return [self.source_rpc_url, *self.source_backup_rpc_urls]

    @computed_field
    @property
    def destination_rpc_urls(self) -> list[str]:
        """Primary plus backup RPC URLs for the destination chain."""
        return [self.destination_rpc_url, *self.destination_backup_rpc_urls]

    def require_operator_key(self) -> str:
        """Return the operator key, failing loudly if it is missing.

        Raises:
            ConfigurationError: No operator key configured
        """
        if not self.operator_private_key:
            raise ConfigurationError(
                "OPERATOR_PRIVATE_KEY is required to sign settlement transactions"
            )
        return self.operator_private_key

    def require_contracts(self) -> None:
        """Check that vault and treasury addresses are configured.

        Raises:
            ConfigurationError: An address is still the zero address
        """
        missing = [
            name
            for name, value in (
                ("VAULT_ADDRESS", self.vault_address),
                ("TREASURY_ADDRESS", self.treasury_address),
            )
            if value.lower() == ZERO_ADDRESS
        ]
        if missing:
            raise ConfigurationError(f"Missing contract addresses: {', '.join(missing)}")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
