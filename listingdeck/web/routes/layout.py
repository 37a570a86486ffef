from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from ...core.models import GroupKind
from ...core.placeholders import fixed_images, plan_stored_group, special_mapping
from ..models.project import ProjectStore

router = APIRouter(prefix="/layout", tags=["layout"])


@router.get("")
def layout_preview(project_id: str = Query(..., description="Project ID")) -> dict:
    """Layout pages and placeholder mapping the next generation will use.

    Groups without photos are reported as null. A group the layout table cannot
    handle fails the whole request with 422.
    """
    try:
        project = ProjectStore.load(project_id)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    groups = {}
    for kind in GroupKind:
        state = project.group(kind)
        if not state.images:
            groups[kind.value] = None
            continue
        plan = plan_stored_group(kind, state.images, state.orientations, state.layout_pages)
        groups[kind.value] = plan.to_dict()

    special = project.special_images()
    return {
        "project_id": project_id,
        **groups,
        "special": special_mapping(special).to_dict(),
        "fixed": fixed_images(special),
    }
