"""Environment-driven settings for the ipn-ledger service."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ipn_ledger.config import LedgerConfig
from ipn_ledger.constants import DEFAULT_CURRENCY


class Settings(BaseSettings):
    # Ledger
    ledger_path: str = "donations.json"
    commit_retries: int = 1
    commit_retry_delay: float = 0.5

    # PayPal IPN
    sandbox: bool = False
    accepted_currency: str = DEFAULT_CURRENCY
    verify_timeout_secs: float = 30.0

    # HTTP
    host: str = "0.0.0.0"
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("IPN_LEDGER_PORT", "PORT"),
    )
    cors_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="IPN_LEDGER_",
        extra="ignore",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    def to_config(self) -> LedgerConfig:
        return LedgerConfig(
            ledger_path=self.ledger_path,
            sandbox=self.sandbox,
            accepted_currency=self.accepted_currency,
            verify_timeout_secs=self.verify_timeout_secs,
            commit_retries=self.commit_retries,
            commit_retry_delay=self.commit_retry_delay,
        )
