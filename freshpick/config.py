from __future__ import annotations
from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FRESHPICK_")

    DATA_DIR: str = ".freshpick"
    TAX_RATE: Decimal = Decimal("0.08")
    # Seconds from placement to packing, then from packing to ready
    PACKING_DELAY: float = 5.0
    READY_DELAY: float = 10.0
    STORE_LOCATION: str = "FreshPick Market"
    SEED_SAMPLE_BUNDLES: bool = True

    CUSTOMER_NAME: str = "Scrooge McDuck"
    CUSTOMER_EMAIL: str = "profit@moneybin.duckburg"
    CUSTOMER_PHONE: str = "(555) NUM-1-DIME"
    CUSTOMER_MEMBER_ID: str = "RICHEST-DUCK-001"

    LOG_LEVEL: str = "INFO"
    PORT: int = 8000
