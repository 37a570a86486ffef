from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from ...core.errors import DocumentGenerationError
from ..services.generation import generate_project

router = APIRouter(prefix="/generate", tags=["generate"])


@router.post("")
def generate(
    project_id: str = Query(..., description="Project ID"),
    language: Optional[str] = Query(None, description="Presentation language (overrides project language)"),
) -> dict:
    """Copy the Slides template, fill it from the project and return its URLs."""
    try:
        result = generate_project(project_id, language=language)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DocumentGenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"project_id": project_id, **result.to_dict()}
