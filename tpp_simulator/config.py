"""Configuration settings for the TPP API Simulator."""
from typing import Optional

from pydantic_settings import BaseSettings

from tpp_simulator.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Client identity and key material
    ob_software_id: Optional[str] = None
    ob_private_key: Optional[str] = None
    ob_private_key_path: Optional[str] = None

    # Request defaults
    ob_provider_code: str = "backbase_dev_uk"
    redirect_uri: str = "https://backbase-dev.com/callback"

    # SaltEdge Priora sandbox
    priora_url: str = "priora.saltedge.com"
    protocol: str = "https"
    http_timeout_seconds: float = 30.0

    # Service identification
    service_name: str = "bb-tpp-api-simulator"
    service_version: str = "1.0.0"
    port: int = 3002
    log_level: str = "INFO"

    # Archived account data routes (token exchange, accounts, refresh)
    enable_account_routes: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        frozen = True

    @property
    def base_url(self) -> str:
        """Root URL of the Priora sandbox, e.g. https://priora.saltedge.com."""
        return f"{self.protocol}://{self.priora_url}"

    def client_id(self) -> str:
        """Return the TPP software ID, failing if it is not configured."""
        if not self.ob_software_id:
            raise ConfigError("OB_SOFTWARE_ID not configured")
        return self.ob_software_id


settings = Settings()
