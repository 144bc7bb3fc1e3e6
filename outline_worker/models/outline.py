from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class RefineRequest(BaseModel):
    notes: Optional[str] = Field(None, description="Free-form notes or manuscript text")


class OutlineItem(BaseModel):
    text: str = ""


class RefineResponse(BaseModel):
    outline: str = ""
    opening: str = ""
    items: Optional[List[OutlineItem]] = None
    visual_code: str = Field("", alias="visualCode", description="Mermaid source, empty when absent")
    error: Optional[str] = None

    class Config:
        populate_by_name = True
