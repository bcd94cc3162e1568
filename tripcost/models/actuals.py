from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import List, Optional
from datetime import date, datetime

from tripcost.services.money import round2


class ExpenseActual(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    actual_id: int
    expense_id: int
    traveler_id: int
    installment_number: int
    actual_amount: float
    actual_date: Optional[date] = None
    paid_by_traveler_id: Optional[int] = None
    payment_method_key: Optional[str] = None
    receipt_url: Optional[str] = None
    actual_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # Joined data
    expense_description: Optional[str] = None
    expense_currency: Optional[str] = None
    estimated_amount: Optional[float] = None
    traveler_name: Optional[str] = None
    paid_by_name: Optional[str] = None


class ActualUpdate(BaseModel):
    """Partial update for an actual.

    Only fields present in the request body are applied; an explicit ``null``
    clears a nullable field. ``actual_amount`` cannot be cleared and is stored
    rounded to the cent.
    """

    actual_amount: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    actual_date: Optional[date] = None
    paid_by_traveler_id: Optional[int] = None
    payment_method_key: Optional[str] = None
    receipt_url: Optional[str] = None
    actual_notes: Optional[str] = None

    @field_validator("actual_amount")
    @classmethod
    def amount_to_cents(cls, v: Optional[float]) -> Optional[float]:
        return round2(v) if v is not None else None

    @model_validator(mode="after")
    def amount_not_cleared(self) -> "ActualUpdate":
        if "actual_amount" in self.model_fields_set and self.actual_amount is None:
            raise ValueError("actual_amount cannot be null")
        return self

    def supplied_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TransferResult(BaseModel):
    transferred_count: int


class ResetResult(BaseModel):
    deleted_count: int


class TravelerBalance(BaseModel):
    traveler_id: int
    traveler_name: str
    is_primary: bool
    should_pay: float
    actually_paid: float
    balance: float  # positive = is owed money, negative = owes money


class SettlementTransaction(BaseModel):
    from_traveler_id: int
    from_name: str
    to_traveler_id: int
    to_name: str
    amount: float


class SettlementSummary(BaseModel):
    trip_id: int
    base_currency: str
    total_estimated: float
    total_actual: float
    total_unpaid: float
    variance: float
    travelers: List[TravelerBalance]
    settlements: List[SettlementTransaction]
