"""Build Slides ``batchUpdate`` requests for a brochure.

The builder is pure: it takes the brochure and a description of the copied
template (slide ids and image elements) and returns request dicts in the order
they must be sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from .errors import UnsupportedDistributionError
from .layouts import PAGE_NUMBERS
from .models import Brochure, GroupKind, ImageGroup, Orientation
from .placeholders import (
    CITY_IMAGE_TOKENS,
    ENERGY_CERTIFICATE_PAGE,
    FLOOR_PLAN_PAGE,
    SECONDARY_IMAGE_TOKEN,
    GroupPlan,
    PageInstance,
    fixed_images,
    plan_group,
    plan_stored_group,
    special_mapping,
    wrap_token,
)

logger = logging.getLogger(__name__)

TITLE_IMAGE_TOKEN = "image1"

# 0-based slide indexes of the template sections
TITLE_SLIDES: Dict[Orientation, int] = {
    Orientation.HORIZONTAL: 0,
    Orientation.VERTICAL: 1,
    Orientation.SQUARE: 0,
}
SECTION_SLIDES: Dict[str, List[int]] = {
    "cityDescription": [2],
    "buildingLayout": [3],
    "amenities": [4],
    "description": [5],
    "floorPlan": [FLOOR_PLAN_PAGE - 1],
    "energyCertificate": [ENERGY_CERTIFICATE_PAGE - 1],
    "termsConditions": [18],
}
PHOTO_SECTIONS: Dict[GroupKind, str] = {
    GroupKind.EXTERIOR: "exteriorPhotos",
    GroupKind.INTERIOR: "interiorPhotos",
}

CENTER_CROP = "CENTER_CROP"
CENTER_INSIDE = "CENTER_INSIDE"


@dataclass(frozen=True)
class ImageElement:
    object_id: str
    title: str = ""
    description: str = ""

    def matches(self, token: str, bare: bool = False) -> bool:
        # "{{token}}" is also a substring of the four-brace template form
        needle = token if bare else "{{" + token + "}}"
        return needle in self.title or needle in self.description


@dataclass(frozen=True)
class TemplateSlide:
    object_id: str
    images: Sequence[ImageElement] = field(default_factory=tuple)


def slides_from_presentation(presentation: Mapping[str, Any]) -> List[TemplateSlide]:
    """Extract slide ids and image elements from a ``presentations.get`` body."""
    slides: List[TemplateSlide] = []
    for slide in presentation.get("slides") or []:
        images = [
            ImageElement(
                object_id=el["objectId"],
                title=el.get("title") or "",
                description=el.get("description") or "",
            )
            for el in slide.get("pageElements") or []
            if el.get("image") is not None and el.get("objectId")
        ]
        slides.append(TemplateSlide(object_id=slide.get("objectId", ""), images=tuple(images)))
    return slides


def _is_selected(selected_pages: Mapping[str, bool], key: str) -> bool:
    # sections the caller does not mention are kept
    return bool(selected_pages.get(key, True))


def replace_method(token: str) -> str:
    return CENTER_INSIDE if "_vimg" in token else CENTER_CROP


def fixed_replace_method(token: str) -> str:
    return CENTER_CROP if token == SECONDARY_IMAGE_TOKEN else CENTER_INSIDE


def _plan_for(group: Optional[ImageGroup], kind: GroupKind, stored_pages: Optional[List[int]]) -> Optional[GroupPlan]:
    if group is None or len(group) == 0:
        return None
    if not group.is_complete:
        horizontal, vertical = group.split()
        raise UnsupportedDistributionError(len(horizontal), len(vertical), kind.value)
    if stored_pages:
        return plan_stored_group(kind, group.urls, group.orientation_map(), stored_pages)
    return plan_group(group)


def plan_brochure(brochure: Brochure) -> Dict[GroupKind, GroupPlan]:
    """Plan both photo groups. Groups without photos are left out."""
    plans: Dict[GroupKind, GroupPlan] = {}
    for kind, group, stored in (
        (GroupKind.EXTERIOR, brochure.exterior, brochure.exterior_layout_pages),
        (GroupKind.INTERIOR, brochure.interior, brochure.interior_layout_pages),
    ):
        plan = _plan_for(group, kind, stored)
        if plan is not None:
            plans[kind] = plan
    return plans


class RequestBuilder:
    def __init__(
        self,
        brochure: Brochure,
        slides: Sequence[TemplateSlide],
        plans: Optional[Dict[GroupKind, GroupPlan]] = None,
    ) -> None:
        self.brochure = brochure
        self.slides = list(slides)
        self.plans = plan_brochure(brochure) if plans is None else plans

    def _active_plans(self) -> List[GroupPlan]:
        """Plans whose photo section is selected."""
        selected = self.brochure.selected_pages
        return [plan for kind, plan in self.plans.items() if _is_selected(selected, PHOTO_SECTIONS[kind])]

    def _slide(self, page: int) -> Optional[TemplateSlide]:
        index = page - 1
        if 0 <= index < len(self.slides):
            return self.slides[index]
        logger.warning("Template has no slide for page %d", page)
        return None

    def text_requests(self) -> List[Dict[str, Any]]:
        requests = []
        for key, value in self.brochure.business_fields.items():
            if not key:
                continue
            requests.append(
                {
                    "replaceAllText": {
                        "containsText": {"text": "{" + key + "}", "matchCase": False},
                        "replaceText": "" if value is None else str(value),
                    }
                }
            )
        return requests

    def _instance_targets(self, inst: PageInstance, slide: TemplateSlide) -> Dict[str, str]:
        """Element id on the slide for this instance, keyed by template element id."""
        if inst.instance == 1:
            return {el.object_id: el.object_id for el in slide.images}
        return {el.object_id: f"{el.object_id}_i{inst.instance}" for el in slide.images}

    def _copies(self) -> Dict[int, List[int]]:
        """Instance numbers of the duplicated slides, keyed by page number."""
        copies: Dict[int, List[int]] = {}
        for plan in self._active_plans():
            for inst in plan.mapping.instances:
                if inst.instance > 1:
                    copies.setdefault(inst.page_number, []).append(inst.instance)
        return copies

    def duplicate_requests(self) -> List[Dict[str, Any]]:
        """One ``duplicateObject`` per repeated page instance.

        Each copy lands right after its source slide, so higher instances are
        duplicated first to leave the copies in instance order.
        """
        requests = []
        for plan in self._active_plans():
            repeated = [inst for inst in plan.mapping.instances if inst.instance > 1]
            for inst in sorted(repeated, key=lambda i: -i.instance):
                slide = self._slide(inst.page_number)
                if slide is None:
                    continue
                object_ids = {slide.object_id: f"{slide.object_id}_i{inst.instance}"}
                object_ids.update(self._instance_targets(inst, slide))
                requests.append({"duplicateObject": {"objectId": slide.object_id, "objectIds": object_ids}})
        return requests

    def layout_image_requests(self) -> List[Dict[str, Any]]:
        requests = []
        for plan in self._active_plans():
            for inst in plan.mapping.instances:
                slide = self._slide(inst.page_number)
                if slide is None:
                    continue
                targets = self._instance_targets(inst, slide)
                for assignment in inst.assignments:
                    matched = [
                        el for el in slide.images if el.matches(assignment.token) or el.matches(assignment.slot)
                    ]
                    if not matched:
                        logger.warning(
                            "No image element for %s on page %d (instance %d)",
                            assignment.token,
                            inst.page_number,
                            inst.instance,
                        )
                        continue
                    for el in matched:
                        requests.append(
                            {
                                "replaceImage": {
                                    "imageObjectId": targets[el.object_id],
                                    "url": assignment.url,
                                    "imageReplaceMethod": replace_method(assignment.token),
                                }
                            }
                        )
        return requests

    def special_image_requests(self) -> List[Dict[str, Any]]:
        requests = []
        for inst in special_mapping(self.brochure.special_images).instances:
            slide = self._slide(inst.page_number)
            if slide is None:
                continue
            if not slide.images:
                logger.warning("No images on page %d for %s", inst.page_number, inst.assignments[0].token)
            for el in slide.images:
                requests.append(
                    {
                        "replaceImage": {
                            "imageObjectId": el.object_id,
                            "url": inst.assignments[0].url,
                            "imageReplaceMethod": CENTER_INSIDE,
                        }
                    }
                )
        return requests

    def fixed_image_requests(self) -> List[Dict[str, Any]]:
        """Replace logo, agent, secondary and city images wherever they appear."""
        requests = []
        copies = self._copies()
        for token, url in fixed_images(self.brochure.special_images).items():
            bare = token in CITY_IMAGE_TOKENS
            method = fixed_replace_method(token)
            found = False
            for page, slide in enumerate(self.slides, start=1):
                for el in slide.images:
                    if not el.matches(token, bare=bare):
                        continue
                    found = True
                    object_ids = [el.object_id] + [f"{el.object_id}_i{n}" for n in copies.get(page, [])]
                    for object_id in object_ids:
                        requests.append(
                            {"replaceImage": {"imageObjectId": object_id, "url": url, "imageReplaceMethod": method}}
                        )
            if not found:
                logger.warning("No image element for %s in the template", token)
        return requests

    def title_image_requests(self) -> List[Dict[str, Any]]:
        url = self.brochure.title_image
        if not url:
            return []
        requests = []
        for index in sorted(set(TITLE_SLIDES.values())):
            if index >= len(self.slides):
                continue
            for el in self.slides[index].images:
                if el.matches(TITLE_IMAGE_TOKEN):
                    requests.append(
                        {
                            "replaceImage": {
                                "imageObjectId": el.object_id,
                                "url": url,
                                "imageReplaceMethod": CENTER_CROP,
                            }
                        }
                    )
        return requests

    def slides_to_delete(self) -> List[str]:
        selected = self.brochure.selected_pages
        indexes: Set[int] = set()

        for kind, section in PHOTO_SECTIONS.items():
            all_pages = sorted(PAGE_NUMBERS[kind].values())
            plan = self.plans.get(kind)
            keep = set(plan.layout_pages) if plan is not None and _is_selected(selected, section) else set()
            indexes.update(page - 1 for page in all_pages if page not in keep)

        if _is_selected(selected, "projectOverview"):
            keep_index = TITLE_SLIDES[self.brochure.title_orientation]
            indexes.update(i for i in TITLE_SLIDES.values() if i != keep_index)
        else:
            indexes.update(TITLE_SLIDES.values())

        for section, slide_indexes in SECTION_SLIDES.items():
            if not _is_selected(selected, section):
                indexes.update(slide_indexes)

        ids = []
        for index in sorted(indexes):
            if 0 <= index < len(self.slides) and self.slides[index].object_id:
                ids.append(self.slides[index].object_id)
            else:
                logger.warning("Cannot delete slide index %d; template has %d slides", index, len(self.slides))
        return ids

    def build(self) -> List[Dict[str, Any]]:
        requests: List[Dict[str, Any]] = []
        requests.extend(self.text_requests())
        requests.extend(self.duplicate_requests())
        requests.extend(self.title_image_requests())
        requests.extend(self.layout_image_requests())
        requests.extend(self.special_image_requests())
        requests.extend(self.fixed_image_requests())
        requests.extend({"deleteObject": {"objectId": sid}} for sid in self.slides_to_delete())
        return requests

    def presentation_images(self) -> Dict[str, str]:
        """Every image URL used, keyed the way it is stored on the project."""
        images: Dict[str, str] = {}
        if self.brochure.title_image:
            images["{{" + TITLE_IMAGE_TOKEN + "}}"] = self.brochure.title_image
        for plan in self.plans.values():
            for token, url in plan.mapping.tokens().items():
                images[wrap_token(token)] = url
        for token, url in special_mapping(self.brochure.special_images).tokens().items():
            images["{{" + token + "}}"] = url
        for token, url in fixed_images(self.brochure.special_images).items():
            images[token if token in CITY_IMAGE_TOKENS else "{{" + token + "}}"] = url
        for kind, group in ((GroupKind.EXTERIOR, self.brochure.exterior), (GroupKind.INTERIOR, self.brochure.interior)):
            if group is None:
                continue
            for idx, url in enumerate(group.urls, start=1):
                images[f"{kind.value}Image{idx}"] = url
        return images


def build_requests(brochure: Brochure, slides: Sequence[TemplateSlide]) -> List[Dict[str, Any]]:
    return RequestBuilder(brochure, slides).build()
