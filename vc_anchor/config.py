"""
config.py - Centralized configuration for the credential service

Values come from the environment or a local .env file.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(ValueError):
    """Raised when a required setting is missing at startup"""

    def __init__(self, var: str):
        super().__init__(
            f"Invalid {var} specified; set the {var} environment variable "
            f"or add it to .env"
        )


class Settings(BaseSettings):
    # Hedera operator (pays for account creation and topic messages)
    HEDERA_NETWORK: str = "testnet"
    HEDERA_ACCOUNT_ID: str = ""
    HEDERA_PRIVATE_KEY: str = ""
    HEDERA_TOPIC_ID: str = ""

    # Issuer identity; the key falls back to the operator key
    ISSUER_DID: str = ""
    ISSUER_PRIVATE_KEY: str = ""

    # IPFS HTTP API
    IPFS_API_URL: str = "http://localhost:5001"
    IPFS_API_KEY: str = ""
    IPFS_TIMEOUT_SECONDS: float = 30.0

    INITIAL_BALANCE_HBAR: int = 10  # funding for newly created DIDs

    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def require(self, *names: str) -> None:
        """Fail fast if any of the named settings is empty"""
        for name in names:
            if not getattr(self, name):
                raise ConfigError(name)

    @property
    def issuer_private_key(self) -> str:
        return self.ISSUER_PRIVATE_KEY or self.HEDERA_PRIVATE_KEY


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
