"""Value types shared by the layout planner and the request builder."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

MIN_GROUP_SIZE = 2
MAX_GROUP_SIZE = 6


class Orientation(str, Enum):
    """Aspect-ratio class of a photograph."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    SQUARE = "square"

    @classmethod
    def parse(cls, value: object) -> "Orientation":
        """Coerce a stored orientation string, defaulting to horizontal."""
        if isinstance(value, Orientation):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.HORIZONTAL

    @property
    def is_vertical(self) -> bool:
        # square photos are laid out as horizontal ones
        return self is Orientation.VERTICAL


class GroupKind(str, Enum):
    EXTERIOR = "exterior"
    INTERIOR = "interior"

    @property
    def prefix(self) -> str:
        return "ext" if self is GroupKind.EXTERIOR else "int"


@dataclass(frozen=True)
class ImageItem:
    url: str
    orientation: Orientation = Orientation.HORIZONTAL


@dataclass(frozen=True)
class ImageGroup:
    """Ordered photos of one kind, in upload order."""

    kind: GroupKind
    images: Tuple[ImageItem, ...] = ()

    @classmethod
    def from_urls(
        cls,
        kind: GroupKind | str,
        urls: Iterable[str],
        orientations: Optional[Mapping[str, object]] = None,
    ) -> "ImageGroup":
        """Build a group from a URL list and an ``{index: orientation}`` map.

        Indexes missing from ``orientations`` are treated as horizontal.
        """
        orientations = orientations or {}
        items = []
        for idx, url in enumerate(urls):
            raw = orientations.get(str(idx))
            items.append(ImageItem(url=url, orientation=Orientation.parse(raw)))
        return cls(kind=GroupKind(kind), images=tuple(items))

    def __len__(self) -> int:
        return len(self.images)

    @property
    def urls(self) -> List[str]:
        return [img.url for img in self.images]

    @property
    def is_complete(self) -> bool:
        return MIN_GROUP_SIZE <= len(self.images) <= MAX_GROUP_SIZE

    def split(self) -> Tuple[List[str], List[str]]:
        """Return (horizontal urls, vertical urls), each in upload order."""
        horizontal: List[str] = []
        vertical: List[str] = []
        for img in self.images:
            (vertical if img.orientation.is_vertical else horizontal).append(img.url)
        return horizontal, vertical

    def orientation_map(self) -> Dict[str, str]:
        return {str(idx): img.orientation.value for idx, img in enumerate(self.images)}

    def without(self, url: str) -> "ImageGroup":
        return replace(self, images=tuple(img for img in self.images if img.url != url))

    def truncated(self, limit: int = MAX_GROUP_SIZE) -> "ImageGroup":
        return replace(self, images=self.images[:limit])


@dataclass(frozen=True)
class SpecialImages:
    """Single images outside the photo groups.

    Floor plan and energy certificate sit on fixed pages. The rest are matched
    by token on whatever slide carries them.
    """

    floor_plan: Optional[str] = None
    energy_certificate: Optional[str] = None
    logo: Optional[str] = None
    agent: Optional[str] = None
    secondary: Optional[str] = None
    city_images: Tuple[str, ...] = ()


@dataclass
class Brochure:
    """Everything needed to fill one presentation template."""

    business_fields: Dict[str, str] = field(default_factory=dict)
    exterior: Optional[ImageGroup] = None
    interior: Optional[ImageGroup] = None
    special_images: SpecialImages = field(default_factory=SpecialImages)
    title_image: Optional[str] = None
    title_orientation: Orientation = Orientation.HORIZONTAL
    selected_pages: Dict[str, bool] = field(default_factory=dict)
    language: str = "en"
    exterior_layout_pages: Optional[List[int]] = None
    interior_layout_pages: Optional[List[int]] = None
