"""Classification result model."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ClassificationResult(BaseModel):
    """Category assignment and deductibility likelihood for one input."""

    category: str
    subcategory: Optional[str] = None
    deductible_likelihood: float = Field(ge=0.0, le=1.0)
    matched_keyword: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def matched(self) -> bool:
        return self.matched_keyword is not None


__all__ = ["ClassificationResult"]
