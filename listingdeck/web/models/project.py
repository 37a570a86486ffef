"""Project model and persistence helpers for the web backend."""

from __future__ import annotations

import json
import logging
import re
import shutil
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from pydantic import BaseModel, Field

from ...core.models import Brochure, GroupKind, ImageGroup, Orientation, SpecialImages
from ..settings import get_storage_root

T = TypeVar("T")

logger = logging.getLogger(__name__)

_PROJECT_ID = re.compile(r"^[0-9a-f]{32}$")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _absolute(base_url: str) -> Callable[[Optional[str]], Optional[str]]:
    def absolute(url: Optional[str]) -> Optional[str]:
        if url and base_url and url.startswith("/"):
            return base_url + url
        return url

    return absolute


class ProjectStatus(str, Enum):
    """Lifecycle states for a brochure project."""

    DRAFT = "draft"
    UPLOADED = "uploaded"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class ImageGroupState(BaseModel):
    """Persisted photos of one group, in upload order.

    ``orientations`` is keyed by the string index into ``images``.
    """

    images: List[str] = Field(default_factory=list)
    orientations: Dict[str, str] = Field(default_factory=dict)
    layout_pages: List[int] = Field(default_factory=list)

    def to_group(self, kind: GroupKind) -> ImageGroup:
        return ImageGroup.from_urls(kind, self.images, self.orientations)


class Project(BaseModel):
    """A property brochure: business data, photos and the last generation result."""

    id: str
    title: str = ""
    status: ProjectStatus = ProjectStatus.DRAFT
    message: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    language: str = "en"
    template_id: Optional[str] = None
    business_fields: Dict[str, str] = Field(default_factory=dict)
    selected_pages: Dict[str, bool] = Field(default_factory=dict)
    exterior: ImageGroupState = Field(default_factory=ImageGroupState)
    interior: ImageGroupState = Field(default_factory=ImageGroupState)
    floor_plan: Optional[str] = None
    energy_certificate: Optional[str] = None
    title_image: Optional[str] = None
    title_orientation: Orientation = Orientation.HORIZONTAL
    logo: Optional[str] = None
    agent: Optional[str] = None
    secondary_image: Optional[str] = None
    city_images: List[str] = Field(default_factory=list)
    result: Dict[str, Any] = Field(default_factory=dict)

    def update_timestamp(self) -> None:
        self.updated_at = _now()

    def group(self, kind: GroupKind) -> ImageGroupState:
        return self.exterior if kind is GroupKind.EXTERIOR else self.interior

    def special_images(self, base_url: str = "") -> SpecialImages:
        absolute = _absolute(base_url)
        return SpecialImages(
            floor_plan=absolute(self.floor_plan),
            energy_certificate=absolute(self.energy_certificate),
            logo=absolute(self.logo),
            agent=absolute(self.agent),
            secondary=absolute(self.secondary_image),
            city_images=tuple(absolute(url) for url in self.city_images),
        )

    def to_brochure(self, base_url: str = "") -> Brochure:
        """Build the generation input. Relative upload paths get ``base_url``."""
        absolute = _absolute(base_url)

        def group(kind: GroupKind) -> ImageGroup:
            state = self.group(kind)
            return ImageGroup.from_urls(kind, [absolute(u) for u in state.images], state.orientations)

        return Brochure(
            business_fields=dict(self.business_fields),
            exterior=group(GroupKind.EXTERIOR),
            interior=group(GroupKind.INTERIOR),
            special_images=self.special_images(base_url),
            title_image=absolute(self.title_image),
            title_orientation=self.title_orientation,
            selected_pages=dict(self.selected_pages),
            language=self.language or "en",
            exterior_layout_pages=list(self.exterior.layout_pages) or None,
            interior_layout_pages=list(self.interior.layout_pages) or None,
        )


class ProjectStore:
    """Filesystem-backed persistence for projects, one directory each."""

    _lock = threading.RLock()

    @classmethod
    def projects_root(cls) -> Path:
        root = get_storage_root()
        root.mkdir(parents=True, exist_ok=True)
        return root

    @classmethod
    def project_dir(cls, project_id: str, create: bool = False) -> Path:
        if not _PROJECT_ID.match(project_id or ""):
            raise FileNotFoundError(f"Project '{project_id}' not found.")
        path = cls.projects_root() / project_id
        if create:
            path.mkdir(parents=True, exist_ok=True)
        return path

    @classmethod
    def uploads_dir(cls, project_id: str) -> Path:
        path = cls.project_dir(project_id, create=True) / "uploads"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @classmethod
    def project_file(cls, project_id: str) -> Path:
        return cls.project_dir(project_id) / "project.json"

    @classmethod
    def create(cls, title: str = "", **fields: Any) -> Project:
        with cls._lock:
            project = Project(id=uuid.uuid4().hex, title=title, **fields)
            cls.project_dir(project.id, create=True)
            cls._write(project)
            logger.info("Created project %s", project.id)
            return project

    @classmethod
    def _write(cls, project: Project) -> None:
        project.update_timestamp()
        with cls.project_file(project.id).open("w", encoding="utf-8") as fh:
            json.dump(project.model_dump(mode="json"), fh, ensure_ascii=False, indent=2)

    @classmethod
    def save(cls, project: Project) -> Project:
        with cls._lock:
            cls._write(project)
            return project

    @classmethod
    def load(cls, project_id: str) -> Project:
        project_file = cls.project_file(project_id)
        if not project_file.exists():
            raise FileNotFoundError(f"Project '{project_id}' not found.")
        with project_file.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        return Project.model_validate(data)

    @classmethod
    def update(cls, project_id: str, **updates: Any) -> Project:
        with cls._lock:
            project = cls.load(project_id)
            for key, value in updates.items():
                if hasattr(project, key):
                    setattr(project, key, value)
            cls._write(project)
            return project

    @classmethod
    def modify(cls, project_id: str, change: Callable[[Project], T]) -> T:
        """Run ``change`` on the current stored project and save it, all under the lock.

        Nothing is written when ``change`` raises.
        """
        with cls._lock:
            project = cls.load(project_id)
            result = change(project)
            cls._write(project)
            return result

    @classmethod
    def list_projects(cls) -> List[Project]:
        projects: List[Project] = []
        for entry in cls.projects_root().iterdir():
            if not entry.is_dir() or not (entry / "project.json").exists():
                continue
            try:
                projects.append(cls.load(entry.name))
            except FileNotFoundError:
                continue
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    @classmethod
    def delete(cls, project_id: str) -> None:
        with cls._lock:
            path = cls.project_dir(project_id)
            if not path.exists():
                raise FileNotFoundError(f"Project '{project_id}' not found.")
            shutil.rmtree(path)
            logger.info("Deleted project %s", project_id)
