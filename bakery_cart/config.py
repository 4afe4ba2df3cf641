"""
Runtime configuration.

Values come from environment variables prefixed with BAKERY_ (or a local .env
file), e.g. BAKERY_FREE_DELIVERY_THRESHOLD=750 or BAKERY_PROCESSING_DELAY=0.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bakery_cart.models import CampaignConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BAKERY_", env_file=".env", extra="ignore")

    storage_key: str = Field("bethysCart", description="Name of the blob holding the cart")
    storage_dir: Optional[str] = Field(None, description="Directory for file-backed storage; memory when unset")

    free_delivery_threshold: int = Field(500, ge=0)
    free_cookie_threshold: int = Field(500, ge=0)
    campaign_active: bool = True
    campaign_code: str = "FRESHBAKE24"
    delivery_fee: int = Field(50, ge=0, description="Flat fee charged below the free-delivery threshold")

    order_number_prefix: str = "BAKERY"
    processing_delay: float = Field(2.0, ge=0, description="Seconds the simulated order placement takes")
    submission_timeout: float = Field(10.0, gt=0)
    submission_attempts: int = Field(3, ge=1)

    def campaign(self) -> CampaignConfig:
        return CampaignConfig(
            free_delivery_threshold=self.free_delivery_threshold,
            free_cookie_threshold=self.free_cookie_threshold,
            active=self.campaign_active,
            code=self.campaign_code,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
