"""Application configuration using pydantic settings with structured sections."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    public_url: str = "http://localhost:8000"


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./offramp.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None


class SecuritySettings(BaseModel):
    admin_api_key: str = Field(default="change-me-admin", min_length=8)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class FeeSettings(BaseModel):
    default_fee_fraction: Decimal = Decimal("0.01")
    # largest converted total accepted for one order, in local currency units
    max_total_local_amount: int = Field(default=10_000_000_000, ge=1, le=2**63 - 1)


class PollingSettings(BaseModel):
    enabled: bool = True
    max_attempts: int = Field(default=20, ge=1)
    base_delay_seconds: float = Field(default=3.0, gt=0)
    factor: float = Field(default=1.4, ge=1.0)
    max_delay_seconds: float = Field(default=30.0, gt=0)


class ReconciliationSettings(BaseModel):
    stale_after_minutes: int = 30
    intent_stale_after_minutes: int = 10
    transition_attempts: int = 3
    sweep_batch_size: int = 100
    sweeps_enabled: bool = True
    sweep_interval_seconds: float = Field(default=300.0, gt=0)


class PretiumSettings(BaseModel):
    enabled: bool = True
    base_url: str = "https://api.xwift.africa"
    api_key: str = ""
    chain: str = "BASE"
    timeout_seconds: float = 30.0


class PaycrestSettings(BaseModel):
    enabled: bool = True
    base_url: str = "https://api.paycrest.io/v1"
    api_key: str = ""
    webhook_secret: str = ""
    token: str = "USDC"
    network: str = "base"
    timeout_seconds: float = 30.0
    memo: str = "USDC off-ramp payout"


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "Off-ramp Settlement Service"
    api_prefix: str = "/api"

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    logging: LoggingSettings = LoggingSettings()
    fees: FeeSettings = FeeSettings()
    polling: PollingSettings = PollingSettings()
    reconciliation: ReconciliationSettings = ReconciliationSettings()
    pretium: PretiumSettings = PretiumSettings()
    paycrest: PaycrestSettings = PaycrestSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def admin_api_key(self) -> str:
        return self.security.admin_api_key

    def callback_url(self, path: str) -> str:
        return f"{self.server.public_url.rstrip('/')}{path}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
