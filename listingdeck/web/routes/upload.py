from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from ...core.models import GroupKind, ImageGroup, ImageItem, Orientation
from ...core.orientation import ImageAnalyzer
from ...core.placeholders import CITY_IMAGE_TOKENS
from ..models.project import Project, ProjectStatus, ProjectStore
from ..services.groups import GroupSizeError, accept_group, store_group
from ..settings import get_max_upload_mb, get_orientation_thresholds

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

SINGLE_IMAGE_KINDS = ("floor_plan", "energy_certificate", "title", "logo", "agent", "secondary_image")
CITY_IMAGES_KIND = "city_images"
MAX_CITY_IMAGES = len(CITY_IMAGE_TOKENS)
UPLOAD_KINDS = tuple(kind.value for kind in GroupKind) + SINGLE_IMAGE_KINDS + (CITY_IMAGES_KIND,)
ALLOWED_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"}


def file_url(project_id: str, name: str) -> str:
    """Stored URL of an uploaded file, served by the projects API."""
    return f"/api/projects/{project_id}/files/{name}"


def _unique_dest(base: Path, filename: str) -> Path:
    dest = base / Path(filename).name
    counter = 1
    while dest.exists():
        dest = base / f"{Path(filename).stem}_{counter}{Path(filename).suffix}"
        counter += 1
    return dest


async def _save(file: UploadFile, base: Path, max_bytes: int) -> Path:
    """Write an upload to ``base`` in 1 MB chunks."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file has no name")
    if Path(file.filename).suffix.lower() not in ALLOWED_SUFFIXES:
        raise HTTPException(status_code=400, detail=f"Unsupported file type: '{file.filename}'")
    dest = _unique_dest(base, file.filename)
    written = 0
    try:
        with dest.open("wb") as fh:
            while True:
                chunk = await file.read(1 << 20)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=f"File '{file.filename}' is too large. Maximum size is {max_bytes >> 20} MB.",
                    )
                fh.write(chunk)
    except HTTPException:
        dest.unlink(missing_ok=True)
        raise
    except OSError as exc:
        dest.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail=f"Failed to save file '{file.filename}': {exc}") from exc
    return dest


def _load_or_create(project_id: Optional[str]) -> Project:
    if not project_id:
        return ProjectStore.create()
    try:
        return ProjectStore.load(project_id)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("")
async def upload_images(
    files: List[UploadFile] = File(..., alias="files"),
    kind: str = Form(...),
    project_id: Optional[str] = Form(None),
    replace: bool = Form(False),
) -> dict:
    """Upload photos for one section of a project.

    Exterior and interior uploads are classified by orientation and appended to
    the stored group (or replace it). City images are appended up to four.
    Other kinds store a single image.
    """
    if kind not in UPLOAD_KINDS:
        raise HTTPException(status_code=400, detail=f"Unknown upload kind '{kind}'. Expected one of {', '.join(UPLOAD_KINDS)}")
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")
    if kind in SINGLE_IMAGE_KINDS and len(files) != 1:
        raise HTTPException(status_code=400, detail=f"Exactly one file is expected for '{kind}'")

    project = _load_or_create(project_id)
    created = not project_id
    uploads = ProjectStore.uploads_dir(project.id)
    max_bytes = get_max_upload_mb() << 20
    analyzer = ImageAnalyzer(*get_orientation_thresholds())
    saved: List[Path] = []

    def discard() -> None:
        for path in saved:
            path.unlink(missing_ok=True)
        if created:
            ProjectStore.delete(project.id)

    try:
        for file in files:
            saved.append(await _save(file, uploads, max_bytes))
    except HTTPException:
        discard()
        raise

    orientations = [analyzer.classify_file(path) for path in saved]
    urls = [file_url(project.id, path.name) for path in saved]

    def merge(current: Project) -> Tuple[dict, List[str]]:
        response: dict = {"project_id": current.id, "kind": kind, "count": len(saved)}
        warnings: List[str] = []
        if kind in SINGLE_IMAGE_KINDS:
            if kind == "title":
                current.title_image = urls[0]
                current.title_orientation = orientations[0]
            else:
                setattr(current, kind, urls[0])
            response["url"] = urls[0]
            response["orientation"] = orientations[0].value
        elif kind == CITY_IMAGES_KIND:
            city = ([] if replace else list(current.city_images)) + urls
            if len(city) > MAX_CITY_IMAGES:
                warnings.append(
                    f"Only the first {MAX_CITY_IMAGES} city images are used; {len(city) - MAX_CITY_IMAGES} were ignored."
                )
                city = city[:MAX_CITY_IMAGES]
            current.city_images = city
            response["images"] = city
        else:
            group_kind = GroupKind(kind)
            existing = ImageGroup(group_kind) if replace else current.group(group_kind).to_group(group_kind)
            new_items = tuple(ImageItem(url, ori) for url, ori in zip(urls, orientations))
            group, warnings = accept_group(ImageGroup(group_kind, existing.images + new_items))
            response.update(store_group(current, group_kind, group).model_dump())
        current.status = ProjectStatus.UPLOADED
        return response, warnings

    try:
        response, warnings = ProjectStore.modify(project.id, merge)
    except GroupSizeError as exc:
        discard()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Storing upload for project %s failed", project.id)
        discard()
        raise HTTPException(status_code=500, detail=f"Failed to store upload: {exc}") from exc

    kept = set(response.get("images", urls))
    for path, url in zip(saved, urls):
        if url not in kept:
            path.unlink(missing_ok=True)

    logger.info(
        "Stored %d %s image(s) for project %s (%d vertical)",
        len(saved),
        kind,
        project.id,
        sum(1 for ori in orientations if ori is Orientation.VERTICAL),
    )
    if warnings:
        response["warnings"] = warnings
    return response
