from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..services.refine import provider_diagnostics

router = APIRouter(tags=["health"])


@router.get("/health")
def v1_health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return provider_diagnostics(settings)
