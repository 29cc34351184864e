from typing import Literal

from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    APP_NAME: str = "mandate-index-provisioner"

    # ===== MongoDB =====
    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "mandate_db"
    MONGO_TIMEOUT_MS: int = 5000

    # ===== Collections =====
    MANDATE_COLLECTION: str = "mandates"
    MANDATE_AUDIT_COLLECTION: str = "mandate_audits"

    # ensure: create missing indexes / check: report only
    PROVISION_MODE: Literal["ensure", "check"] = "ensure"

    LOG_LEVEL: str = "INFO"

    class Config:
        # deploy tooling injects credentials through the environment or .env
        env_file = ".env"


settings = AppSettings()
