from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Traveler(BaseModel):
    """A trip participant as the forecast and settlement see it."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    trip_id: int
    name: str
    is_cost_sharer: bool = True
    is_primary: bool = False
    currency: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else None
