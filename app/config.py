import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 5)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)

    @property
    def JWT_SECRET(self) -> str:
        return os.getenv("JWT_SECRET", "change-me-in-production")

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def SETTLEMENT_CURRENCY(self) -> str:
        return os.getenv("SETTLEMENT_CURRENCY", "INR").strip().upper()

    @property
    def ORDER_EXPIRY_MINUTES(self) -> int:
        return self._get_int("ORDER_EXPIRY_MINUTES", 10)

    @property
    def EXPIRY_SWEEP_ENABLED(self) -> bool:
        return self._get_bool("EXPIRY_SWEEP_ENABLED", True)

    @property
    def EXPIRY_SWEEP_INTERVAL_SECONDS(self) -> int:
        return self._get_int("EXPIRY_SWEEP_INTERVAL_SECONDS", 60)

    @property
    def DELIVERY_BASE_DAYS(self) -> int:
        return self._get_int("DELIVERY_BASE_DAYS", 5)

    @property
    def DELIVERY_BACKORDER_EXTRA_DAYS(self) -> int:
        return self._get_int("DELIVERY_BACKORDER_EXTRA_DAYS", 7)

    @property
    def PAYMENT_WEBHOOK_SECRET(self) -> str:
        return os.getenv("PAYMENT_WEBHOOK_SECRET", "")

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == "change-me-in-production":
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
