from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, model_validator


class FilterSelectionModel(BaseModel):
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    country: str = "all"
    channel: str = "all"
    merchant_category: str = "all"
    fraud_only: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> "FilterSelectionModel":
        if self.date_start and self.date_end and self.date_start > self.date_end:
            raise ValueError("date_start must not be after date_end")
        return self


class MetaOptionsResponse(BaseModel):
    countries: List[str]
    channels: List[str]
    categories: List[str]
    min_date: Optional[date] = None
    max_date: Optional[date] = None
    rows: int
    source: str
