"""Application-wide configuration settings."""

from enum import Enum
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv(override=False)

# Base paths
BASE_DIR = Path(__file__).parent
LOGS_DIR = BASE_DIR / "logs"


class GATEWAY_TYPE(Enum):
    SIMULATED = "simulated"
    STRIPE = "stripe"


class APISettings(BaseSettings):
    """API-related settings."""

    api_key: SecretStr = Field(default=SecretStr(""), validation_alias="API_KEY")
    cors_origins: list[str] = Field(default=["http://localhost:3000"], validation_alias="CORS_ORIGINS")
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class DatabaseSettings(BaseSettings):
    """Database-related settings."""

    mongodb_uri: str = Field(default="mongodb://127.0.0.1:27017", validation_alias="MONGODB_URI")
    database_name: str = Field(default="job-portal", validation_alias="DB_NAME")
    timeout_ms: int = Field(default=5000, ge=1, validation_alias="DB_TIMEOUT_MS")

    @property
    def uri(self) -> str:
        """Get the MongoDB connection URI."""
        return self.mongodb_uri

    @property
    def client_options(self) -> Dict[str, int | bool]:
        """Keyword arguments for the Motor client, bounding every storage call."""
        return {
            "serverSelectionTimeoutMS": self.timeout_ms,
            "connectTimeoutMS": self.timeout_ms,
            "socketTimeoutMS": self.timeout_ms,
            "tz_aware": True,
        }

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class PaymentSettings(BaseSettings):
    """Payment and plan related settings."""

    gateway: GATEWAY_TYPE = Field(default=GATEWAY_TYPE.SIMULATED, validation_alias="PAYMENT_GATEWAY")
    simulated_approve: bool = Field(default=True, validation_alias="SIMULATED_APPROVE")
    razorpay_key_id: str = Field(default="rzp_test_key", validation_alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: SecretStr = Field(default=SecretStr(""), validation_alias="RAZORPAY_KEY_SECRET")
    stripe_secret_key: SecretStr = Field(default=SecretStr(""), validation_alias="STRIPE_SECRET_KEY")
    default_plan_id: str = Field(default="standard", validation_alias="DEFAULT_PLAN_ID")

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class LoggingSettings(BaseSettings):
    """Logging-related settings."""

    log_level: str = Field(default="INFO")
    file_log_level: str = Field(default="DEBUG")
    backup_count: int = Field(default=9)
    format: str = Field(default="%(name)s - %(levelname)s - [%(request_id)s] %(message)s")
    file_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s")
    enable_endpoint_logging: bool = Field(default=False, validation_alias="ENABLE_ENDPOINT_LOGGING")
    noisy_loggers: Dict[str, str] = Field(
        default={
            "urllib3": "WARNING",
            "uvicorn": "WARNING",
            "pymongo": "WARNING",
            "pymongo.topology": "WARNING",
            "pymongo.server": "WARNING",
            "pymongo.connection": "WARNING",
            "pymongo.monitoring": "WARNING",
            "stripe": "WARNING",
            "watchfiles": "WARNING",
            "watchfiles.main": "WARNING",
        }
    )

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class Settings(BaseSettings):
    """Global settings container."""

    api: APISettings = Field(default_factory=APISettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    AUTH_SECRET_KEY: str = Field(default="change-me", validation_alias="AUTH_SECRET_KEY")

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


# Create global settings instance
settings = Settings()
