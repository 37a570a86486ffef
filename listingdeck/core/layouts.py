"""Slide layout types and the fixed combination table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import UnsupportedDistributionError
from .models import GroupKind

logger = logging.getLogger(__name__)


class LayoutType(str, Enum):
    """Photo slide templates. Values are the letters used in token names."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"

    @property
    def capacity(self) -> Tuple[int, int]:
        """(horizontal, vertical) slots on one instance of this layout."""
        return CAPACITIES[self]

    @property
    def horizontal_slots(self) -> int:
        return CAPACITIES[self][0]

    @property
    def vertical_slots(self) -> int:
        return CAPACITIES[self][1]


CAPACITIES: Dict[LayoutType, Tuple[int, int]] = {
    LayoutType.A: (2, 0),
    LayoutType.B: (0, 4),
    LayoutType.C: (1, 2),
    LayoutType.D: (0, 1),
    LayoutType.E: (1, 0),
}

PAGE_NUMBERS: Dict[GroupKind, Dict[LayoutType, int]] = {
    GroupKind.EXTERIOR: {
        LayoutType.A: 7,
        LayoutType.B: 8,
        LayoutType.C: 9,
        LayoutType.D: 10,
        LayoutType.E: 11,
    },
    GroupKind.INTERIOR: {
        LayoutType.A: 12,
        LayoutType.B: 13,
        LayoutType.C: 14,
        LayoutType.D: 15,
        LayoutType.E: 16,
    },
}

_A, _B, _C, _D, _E = LayoutType.A, LayoutType.B, LayoutType.C, LayoutType.D, LayoutType.E

# (horizontal, vertical) -> layout sequence
COMBINATIONS: Dict[Tuple[int, int], Tuple[LayoutType, ...]] = {
    (2, 0): (_A,),
    (1, 1): (_D, _E),
    (0, 2): (_D, _D),
    (3, 0): (_A, _E),
    (2, 1): (_A, _D),
    (1, 2): (_C,),
    (0, 3): (_D, _D, _D),
    (4, 0): (_A, _A),
    (3, 1): (_A, _D, _E),
    (2, 2): (_C, _E),
    (1, 3): (_C, _D),
    (0, 4): (_B,),
    (5, 0): (_A, _A, _E),
    (4, 1): (_A, _A, _D),
    (3, 2): (_A, _C),
    (2, 3): (_C, _D, _E),
    (1, 4): (_B, _E),
    (0, 5): (_B, _D),
    (6, 0): (_A, _A, _A),
    (5, 1): (_A, _A, _D, _E),
    (4, 2): (_A, _A, _D, _D),
    (3, 3): (_A, _C, _D),
    (2, 4): (_A, _B),
    (1, 5): (_B, _D, _E),
    (0, 6): (_B, _D, _D),
}


@dataclass(frozen=True)
class LayoutPage:
    type: LayoutType
    page_number: int


def select_layouts(horizontal: int, vertical: int, kind: Optional[GroupKind] = None) -> List[LayoutType]:
    """Return the layout sequence for a horizontal/vertical split.

    Raises UnsupportedDistributionError for any split outside the table.
    """
    try:
        combination = COMBINATIONS[(horizontal, vertical)]
    except KeyError:
        raise UnsupportedDistributionError(
            horizontal, vertical, kind.value if kind is not None else None
        ) from None
    return list(combination)


def page_number(kind: GroupKind, layout: LayoutType) -> int:
    return PAGE_NUMBERS[kind][layout]


def layout_pages(kind: GroupKind, layouts: Iterable[LayoutType]) -> List[LayoutPage]:
    return [LayoutPage(type=lt, page_number=page_number(kind, lt)) for lt in layouts]


def layouts_from_pages(kind: GroupKind, pages: Iterable[int | str]) -> List[LayoutType]:
    """Map stored page numbers back to layout types.

    Unknown page numbers are logged and dropped.
    """
    by_page = {num: lt for lt, num in PAGE_NUMBERS[kind].items()}
    layouts: List[LayoutType] = []
    for raw in pages:
        try:
            num = int(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric %s layout page %r", kind.value, raw)
            continue
        lt = by_page.get(num)
        if lt is None:
            logger.warning("No %s layout is defined for page %s", kind.value, num)
            continue
        layouts.append(lt)
    return layouts
