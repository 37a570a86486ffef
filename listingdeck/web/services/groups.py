"""Keep a project's stored photo groups consistent with the layout table."""

from __future__ import annotations

import logging
from typing import List, Tuple

from ...core.models import GroupKind, ImageGroup
from ...core.placeholders import plan_group
from ..models.project import ImageGroupState, Project
from ..settings import get_group_limits

logger = logging.getLogger(__name__)


class GroupSizeError(ValueError):
    """Raised when a photo group has too few images to lay out."""


def group_state(group: ImageGroup) -> ImageGroupState:
    """Persistable state for ``group`` with freshly selected layout pages.

    Incomplete groups are stored without layout pages.
    """
    layout_pages: List[int] = []
    if group.is_complete:
        layout_pages = plan_group(group).layout_pages
    return ImageGroupState(images=group.urls, orientations=group.orientation_map(), layout_pages=layout_pages)


def accept_group(group: ImageGroup) -> Tuple[ImageGroup, List[str]]:
    """Apply the upload limits to ``group``.

    Returns the (possibly truncated) group and user-facing warnings. An empty
    group clears the section; anything else below the minimum is rejected.
    """
    low, high = get_group_limits()
    warnings: List[str] = []
    if 0 < len(group) < low:
        raise GroupSizeError(
            f"At least {low} {group.kind.value} images are required, got {len(group)}."
        )
    if len(group) > high:
        dropped = len(group) - high
        warnings.append(
            f"Only the first {high} {group.kind.value} images are used; {dropped} were ignored."
        )
        logger.warning("Truncating %s group from %d to %d images", group.kind.value, len(group), high)
        group = group.truncated(high)
    return group, warnings


def store_group(project: Project, kind: GroupKind, group: ImageGroup) -> ImageGroupState:
    state = group_state(group)
    if kind is GroupKind.EXTERIOR:
        project.exterior = state
    else:
        project.interior = state
    return state
