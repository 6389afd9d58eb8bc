from decimal import Decimal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class PricingConfig(BaseModel):
    free_delivery_threshold: Decimal = Field(Decimal("199"), ge=0, description="Delivery is free above this amount")
    flat_delivery_fee: Decimal = Field(Decimal("40"), ge=0, description="Fee charged at or below the threshold")
    tax_rate: Decimal = Field(Decimal("0.05"), ge=0, description="Flat tax rate on goods and gift wrap")


class Settings(BaseSettings):
    # Each field is read from the environment variable of the same name
    DATABASE_URL: str = ""
    DATABASE_NAME: str = "gift_storefront"
    BACKEND_URL: str = "http://localhost:3000"
    BACKEND_TIMEOUT: float = 10
    FREE_DELIVERY_THRESHOLD: Decimal = Field(Decimal("199"), ge=0)
    FLAT_DELIVERY_FEE: Decimal = Field(Decimal("40"), ge=0)
    TAX_RATE: Decimal = Field(Decimal("0.05"), ge=0)
    MAX_SESSIONS: int = Field(10000, ge=1, description="Sessions kept in memory before the least recently used is dropped")
    PORT: int = 8000

    def pricing(self) -> PricingConfig:
        return PricingConfig(
            free_delivery_threshold=self.FREE_DELIVERY_THRESHOLD,
            flat_delivery_fee=self.FLAT_DELIVERY_FEE,
            tax_rate=self.TAX_RATE,
        )


settings = Settings()
