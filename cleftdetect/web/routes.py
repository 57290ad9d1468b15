from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..ai.guidance import PHOTO_TIPS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ui"])

INDEX_HTML = Path(__file__).parent / "templates" / "index.html"


@router.get("/", include_in_schema=False)
async def root() -> RedirectResponse:
    return RedirectResponse(url="/ui")


@router.get("/ui", response_class=HTMLResponse)
async def ui_root() -> HTMLResponse:
    if not INDEX_HTML.exists():
        raise HTTPException(status_code=500, detail="UI template missing")
    return HTMLResponse(INDEX_HTML.read_text(encoding="utf-8"))


@router.get("/ui/state")
async def ui_state(request: Request) -> dict[str, Any]:
    service = getattr(request.app.state, "service", None)
    registry = getattr(request.app.state, "registry", None)
    guidance = getattr(request.app.state, "guidance_client", None)
    session = service.snapshot() if service is not None else {}
    labels = registry.labels if registry is not None else None
    return {
        **session,
        "model": registry.describe() if registry is not None else None,
        "labels": list(labels.classes) if labels else [],
        "guidance_backend": guidance.__class__.__name__ if guidance else "unknown",
        "photo_tips": list(PHOTO_TIPS),
    }


__all__ = ["router"]
