from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Dict


class ExchangeRates(BaseModel):
    base: str
    rates: Dict[str, float]
    fetched_at: datetime


class RateOverrideIn(BaseModel):
    from_currency: str = Field(..., description="Currency converted from (e.g. EUR)")
    to_currency: str = Field(..., description="Currency converted to (e.g. USD)")
    rate: float = Field(..., gt=0, description="Units of to_currency per 1 from_currency")
    ttl_seconds: int = Field(
        900,
        gt=0,
        le=86400,
        description="Override TTL seconds (default 900 = 15m, max 24h)",
    )

    @field_validator("from_currency", "to_currency")
    @classmethod
    def valid_code(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return v

    @field_validator("to_currency")
    @classmethod
    def not_same(cls, v: str, info):  # type: ignore[override]
        if info.data.get("from_currency") == v:
            raise ValueError("to_currency cannot equal from_currency")
        return v
