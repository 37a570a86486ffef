"""Assign photos to named placeholder tokens on layout pages.

Every layout type has a fixed list of horizontal and vertical slots. Layouts are
consumed in sequence order: each instance takes the next unused horizontal and
vertical photos, in upload order. When a layout appears more than once in a
sequence it reuses its page number, and numbered slots keep counting
(``ext_a_himg3`` on the second A page). Unnumbered slots such as ``ext_d_vimg``
keep their bare name on every instance; the page-keyed instance lists are what
tell those apart.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import UnsupportedDistributionError
from .layouts import LayoutType, layouts_from_pages, page_number, select_layouts
from .models import GroupKind, ImageGroup, SpecialImages

logger = logging.getLogger(__name__)

FLOOR_PLAN_PAGE = 17
ENERGY_CERTIFICATE_PAGE = 18
FLOOR_PLAN_TOKEN = "image7"
ENERGY_CERTIFICATE_TOKEN = "image8"

# tokens matched on any slide
LOGO_TOKEN = "logo"
AGENT_TOKEN = "agent"
SECONDARY_IMAGE_TOKEN = "image2"
CITY_IMAGE_TOKENS = ("cityimg1", "cityimg2", "cityimg3", "cityimg4")

# (horizontal slot names, vertical slot names); "{n}" marks a numbered slot
SLOT_NAMES: Dict[LayoutType, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    LayoutType.A: (("a_himg{n}", "a_himg{n}"), ()),
    LayoutType.B: ((), ("b_vimg{n}", "b_vimg{n}", "b_vimg{n}", "b_vimg{n}")),
    LayoutType.C: (("c_himg",), ("c_vimg{n}", "c_vimg{n}")),
    LayoutType.D: ((), ("d_vimg",)),
    LayoutType.E: (("e_himg",), ()),
}


def wrap_token(token: str) -> str:
    """Token as written in the presentation template."""
    return "{{{{" + token + "}}}}"


def _slot_name(prefix: str, pattern: str, local_index: int, instance: int, per_instance: int) -> Tuple[str, str]:
    """Return (token, instance-local template slot) for one slot."""
    if "{n}" not in pattern:
        name = f"{prefix}_{pattern}"
        return name, name
    token = f"{prefix}_" + pattern.format(n=(instance - 1) * per_instance + local_index + 1)
    slot = f"{prefix}_" + pattern.format(n=local_index + 1)
    return token, slot


@dataclass(frozen=True)
class SlotAssignment:
    token: str
    slot: str
    url: str


@dataclass(frozen=True)
class PageInstance:
    """One use of a template page. ``instance`` counts from 1."""

    page_number: int
    instance: int
    layout: Optional[LayoutType]
    assignments: Tuple[SlotAssignment, ...]

    def tokens(self) -> Dict[str, str]:
        return {a.token: a.url for a in self.assignments}


@dataclass(frozen=True)
class PlaceholderMapping:
    instances: Tuple[PageInstance, ...] = ()

    def pages(self) -> Dict[int, List[Dict[str, str]]]:
        """page number -> one token dict per instance, in sequence order."""
        out: Dict[int, List[Dict[str, str]]] = {}
        for inst in self.instances:
            out.setdefault(inst.page_number, []).append(inst.tokens())
        return out

    def page_tokens(self, page: int) -> Dict[str, str]:
        """Flat view of one page. Later instances overwrite repeated tokens."""
        merged: Dict[str, str] = {}
        for inst in self.instances:
            if inst.page_number == page:
                merged.update(inst.tokens())
        return merged

    def tokens(self) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for inst in self.instances:
            merged.update(inst.tokens())
        return merged

    def assigned_urls(self) -> List[str]:
        return [a.url for inst in self.instances for a in inst.assignments]

    @property
    def page_numbers(self) -> List[int]:
        return [inst.page_number for inst in self.instances]

    def merged(self, other: "PlaceholderMapping") -> "PlaceholderMapping":
        return PlaceholderMapping(self.instances + other.instances)

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {str(page): insts for page, insts in self.pages().items()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class GroupPlan:
    kind: GroupKind
    layouts: Tuple[LayoutType, ...]
    mapping: PlaceholderMapping = field(default_factory=PlaceholderMapping)

    @property
    def layout_pages(self) -> List[int]:
        return [page_number(self.kind, lt) for lt in self.layouts]

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "layouts": [lt.value for lt in self.layouts],
            "layout_pages": self.layout_pages,
            "mapping": self.mapping.to_dict(),
        }


def assign_placeholders(
    kind: GroupKind,
    layouts: Iterable[LayoutType],
    horizontal: Sequence[str],
    vertical: Sequence[str],
) -> PlaceholderMapping:
    """Fill the slots of ``layouts`` from the two ordered URL lists.

    A slot with no photo left is logged and skipped; the rest of the mapping is
    still produced.
    """
    prefix = kind.prefix
    h_cursor = 0
    v_cursor = 0
    seen: Dict[int, int] = {}
    instances: List[PageInstance] = []

    for layout in layouts:
        page = page_number(kind, layout)
        seen[page] = seen.get(page, 0) + 1
        instance = seen[page]
        h_slots, v_slots = SLOT_NAMES[layout]
        assignments: List[SlotAssignment] = []

        for pool, slots, is_vertical in ((horizontal, h_slots, False), (vertical, v_slots, True)):
            for local_index, pattern in enumerate(slots):
                token, slot = _slot_name(prefix, pattern, local_index, instance, len(slots))
                cursor = v_cursor if is_vertical else h_cursor
                if cursor < len(pool):
                    assignments.append(SlotAssignment(token=token, slot=slot, url=pool[cursor]))
                else:
                    logger.warning(
                        "No %s image #%d for %s on page %d (instance %d); slot skipped",
                        "vertical" if is_vertical else "horizontal",
                        cursor,
                        token,
                        page,
                        instance,
                    )
                if is_vertical:
                    v_cursor += 1
                else:
                    h_cursor += 1

        instances.append(PageInstance(page, instance, layout, tuple(assignments)))

    if h_cursor < len(horizontal) or v_cursor < len(vertical):
        logger.warning(
            "%s layout left images unplaced: %d/%d horizontal, %d/%d vertical consumed",
            kind.value,
            min(h_cursor, len(horizontal)),
            len(horizontal),
            min(v_cursor, len(vertical)),
            len(vertical),
        )
    return PlaceholderMapping(tuple(instances))


def _fits(layouts: Sequence[LayoutType], h_count: int, v_count: int) -> bool:
    return (
        sum(lt.horizontal_slots for lt in layouts) == h_count
        and sum(lt.vertical_slots for lt in layouts) == v_count
    )


def plan_group(group: ImageGroup) -> GroupPlan:
    """Select layouts for a group and assign every photo to a token.

    Raises UnsupportedDistributionError when the group is outside 2..6 photos.
    """
    horizontal, vertical = group.split()
    layouts = select_layouts(len(horizontal), len(vertical), group.kind)
    mapping = assign_placeholders(group.kind, layouts, horizontal, vertical)
    logger.info(
        "%s: %d horizontal, %d vertical -> %s",
        group.kind.value,
        len(horizontal),
        len(vertical),
        ",".join(lt.value for lt in layouts),
    )
    return GroupPlan(kind=group.kind, layouts=tuple(layouts), mapping=mapping)


def plan_stored_group(
    kind: GroupKind | str,
    urls: Sequence[str],
    orientations: Optional[Mapping[str, object]] = None,
    layout_pages: Optional[Iterable[int | str]] = None,
) -> GroupPlan:
    """Rebuild a plan from persisted state without reclassifying photos.

    Stored layout pages are reused when they hold exactly the stored photos;
    otherwise the layouts are selected again from the orientation counts.
    Raises UnsupportedDistributionError when the group is outside 2..6 photos,
    whatever the stored pages say.
    """
    group = ImageGroup.from_urls(kind, urls, orientations)
    if not group.is_complete:
        horizontal, vertical = group.split()
        raise UnsupportedDistributionError(len(horizontal), len(vertical), group.kind.value)
    layout_pages = list(layout_pages or [])
    if layout_pages:
        layouts = layouts_from_pages(group.kind, layout_pages)
        horizontal, vertical = group.split()
        if layouts and _fits(layouts, len(horizontal), len(vertical)):
            mapping = assign_placeholders(group.kind, layouts, horizontal, vertical)
            return GroupPlan(kind=group.kind, layouts=tuple(layouts), mapping=mapping)
        logger.warning(
            "Stored %s layout pages %s do not match %d horizontal/%d vertical images; reselecting",
            group.kind.value,
            layout_pages,
            len(horizontal),
            len(vertical),
        )
    return plan_group(group)


def special_mapping(images: SpecialImages) -> PlaceholderMapping:
    instances: List[PageInstance] = []
    if images.floor_plan:
        instances.append(
            PageInstance(
                FLOOR_PLAN_PAGE,
                1,
                None,
                (SlotAssignment(FLOOR_PLAN_TOKEN, FLOOR_PLAN_TOKEN, images.floor_plan),),
            )
        )
    if images.energy_certificate:
        instances.append(
            PageInstance(
                ENERGY_CERTIFICATE_PAGE,
                1,
                None,
                (SlotAssignment(ENERGY_CERTIFICATE_TOKEN, ENERGY_CERTIFICATE_TOKEN, images.energy_certificate),),
            )
        )
    return PlaceholderMapping(tuple(instances))


def fixed_images(images: SpecialImages) -> Dict[str, str]:
    """Template-wide image tokens and their URLs, in replacement order.

    City images past the fourth have no token and are left out.
    """
    tokens: Dict[str, str] = {}
    for token, url in (
        (LOGO_TOKEN, images.logo),
        (AGENT_TOKEN, images.agent),
        (SECONDARY_IMAGE_TOKEN, images.secondary),
    ):
        if url:
            tokens[token] = url
    if len(images.city_images) > len(CITY_IMAGE_TOKENS):
        logger.warning(
            "Template has %d city image slots; %d city images were given",
            len(CITY_IMAGE_TOKENS),
            len(images.city_images),
        )
    for token, url in zip(CITY_IMAGE_TOKENS, images.city_images):
        if url:
            tokens[token] = url
    return tokens
