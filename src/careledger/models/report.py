"""Mileage and tax report models."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class MileageEstimate(BaseModel):
    """Driving distance for a care trip and its deduction at the IRS medical rate."""

    miles: Decimal
    origin: str
    destination: str
    duration_minutes: Optional[int] = None
    rate: Decimal
    deduction: Decimal

    model_config = ConfigDict(frozen=True)


class DeductionSummary(BaseModel):
    """Tax-deductible totals for one tax year."""

    tax_year: int
    expense_count: int = 0
    total_deductible: Decimal = Decimal("0.00")
    by_category: Dict[str, Decimal] = Field(default_factory=dict)
    agi: Optional[Decimal] = None
    agi_floor: Optional[Decimal] = Field(
        default=None,
        description="Portion of AGI under which medical expenses do not count.",
    )
    deductible_above_floor: Optional[Decimal] = None

    model_config = ConfigDict(frozen=True)


__all__ = ["MileageEstimate", "DeductionSummary"]
