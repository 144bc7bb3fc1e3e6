from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..models.outline import OutlineItem, RefineRequest, RefineResponse
from ..services import refine as svc
from ..services.parsing import ParsedResponse, items_to_outline, normalize_item, parse_model_response

router = APIRouter(tags=["refine"])
log = logging.getLogger("app.refine")


def _present(parsed: ParsedResponse) -> RefineResponse:
    """Normalize items for display; outline is re-rendered from their texts."""
    if parsed.items:
        items = [OutlineItem(**normalize_item(it)) for it in parsed.items]
        return RefineResponse(
            outline=items_to_outline([it.text for it in items]),
            opening=parsed.opening,
            items=items,
            visual_code=parsed.visual_code or "",
        )
    return RefineResponse(
        outline=parsed.outline,
        opening=parsed.opening,
        visual_code=parsed.visual_code or "",
    )


@router.post("/claude", response_model=RefineResponse, response_model_exclude_none=True)
def v1_refine(payload: RefineRequest, settings: Settings = Depends(get_settings)):
    notes = payload.notes
    if not notes or not notes.strip():
        raise HTTPException(status_code=400, detail="notes must be a non-empty string")

    provider = svc.selected_provider(settings)
    try:
        text = svc.generate_outline_text(settings, notes)
    except svc.UpstreamError as e:
        log.exception(f"{provider} refine failed")
        body = RefineResponse(error=str(e) or f"{provider} call failed")
        return JSONResponse(status_code=500, content=body.dict(by_alias=True, exclude_none=True))

    result = _present(parse_model_response(text))
    log.info(
        f"refined notes: items={len(result.items or [])} "
        f"opening_chars={len(result.opening)} visual={'yes' if result.visual_code else 'no'}"
    )
    return result
