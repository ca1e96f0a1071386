from __future__ import annotations

from pydantic import Field

from core.models.base import CamelModel


class LogActivityRequest(CamelModel):
    user_id: int
    text: str = Field(..., examples=["I did a 30 minute HIIT workout"])
