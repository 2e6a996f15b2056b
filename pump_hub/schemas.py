from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class PumpControlIn(BaseModel):
    action: str = Field(..., description="on | off | auto | manual")


class CommandResultOut(BaseModel):
    success: bool
    message: str
    action: Optional[str] = None


class TelegramTestOut(BaseModel):
    success: bool
