from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class SimWeightRequest(BaseModel):
    channel: str
    weight: float
    noise: Optional[float] = Field(default=None, ge=0)


class SettingsUpdateRequest(BaseModel):
    updates: Dict[str, Any]
