"""Project management endpoints."""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from ...core.models import GroupKind, ImageGroup, Orientation
from ..models.project import Project, ProjectStatus, ProjectStore
from ..services.groups import GroupSizeError, accept_group, store_group

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectCreate(BaseModel):
    title: str = ""
    language: str = "en"
    template_id: Optional[str] = None
    business_fields: Dict[str, str] = Field(default_factory=dict)
    selected_pages: Dict[str, bool] = Field(default_factory=dict)


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    language: Optional[str] = None
    template_id: Optional[str] = None
    business_fields: Optional[Dict[str, str]] = None
    selected_pages: Optional[Dict[str, bool]] = None
    title_orientation: Optional[Orientation] = None
    logo: Optional[str] = None
    agent: Optional[str] = None
    secondary_image: Optional[str] = None
    city_images: Optional[List[str]] = Field(default=None, max_length=4)


class GroupPayload(BaseModel):
    """Photos already classified by the client, in upload order."""

    urls: List[str] = Field(default_factory=list)
    orientations: Dict[str, str] = Field(default_factory=dict)


def _load(project_id: str) -> Project:
    try:
        return ProjectStore.load(project_id)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _group_kind(kind: str) -> GroupKind:
    try:
        return GroupKind(kind)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown image group '{kind}'") from exc


@router.get("", response_model=List[Project])
def list_projects() -> List[Project]:
    """List all projects, newest first."""
    return ProjectStore.list_projects()


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate) -> Project:
    return ProjectStore.create(**payload.model_dump())


@router.get("/{project_id}", response_model=Project)
def get_project(project_id: str) -> Project:
    return _load(project_id)


@router.patch("/{project_id}", response_model=Project)
def update_project(project_id: str, payload: ProjectUpdate) -> Project:
    _load(project_id)
    updates = payload.model_dump(exclude_none=True)
    return ProjectStore.update(project_id, **updates)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_project(project_id: str) -> Response:
    try:
        ProjectStore.delete(project_id)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{project_id}/images/{kind}")
def set_images(project_id: str, kind: str, payload: GroupPayload) -> dict:
    """Replace a photo group with client-classified URLs.

    The layout pages are selected again; more than six photos are truncated.
    """
    group_kind = _group_kind(kind)
    project = _load(project_id)
    group = ImageGroup.from_urls(group_kind, payload.urls, payload.orientations)
    try:
        group, warnings = accept_group(group)
    except GroupSizeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    state = store_group(project, group_kind, group)
    if group.urls:
        project.status = ProjectStatus.UPLOADED
    ProjectStore.save(project)
    response = {"project_id": project_id, "kind": group_kind.value, **state.model_dump()}
    if warnings:
        response["warnings"] = warnings
    return response


@router.delete("/{project_id}/images/{kind}")
def remove_image(project_id: str, kind: str, url: str = Query(..., description="Stored image URL")) -> dict:
    """Remove one photo from a group.

    A group left with a single photo keeps it but loses its layout pages until
    another photo is added.
    """
    group_kind = _group_kind(kind)
    project = _load(project_id)
    group = project.group(group_kind).to_group(group_kind)
    if url not in group.urls:
        raise HTTPException(status_code=404, detail=f"Image not in {group_kind.value} group: {url}")
    state = store_group(project, group_kind, group.without(url))
    ProjectStore.save(project)
    return {"project_id": project_id, "kind": group_kind.value, **state.model_dump()}


@router.get("/{project_id}/files/{name}")
def get_file(project_id: str, name: str) -> FileResponse:
    """Serve an uploaded image."""
    _load(project_id)
    uploads = ProjectStore.uploads_dir(project_id)
    path = (uploads / name).resolve()
    if path.parent != uploads.resolve() or not path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {name}")
    return FileResponse(path=str(path), filename=path.name)
