"""Layout assignment: orientation, layout selection and placeholder tokens."""

from .errors import DocumentGenerationError, LayoutError, UnsupportedDistributionError
from .layouts import COMBINATIONS, PAGE_NUMBERS, LayoutPage, LayoutType, select_layouts
from .models import Brochure, GroupKind, ImageGroup, ImageItem, Orientation, SpecialImages
from .orientation import ImageAnalyzer, classify_dimensions
from .placeholders import (
    GroupPlan,
    PlaceholderMapping,
    assign_placeholders,
    fixed_images,
    plan_group,
    plan_stored_group,
    special_mapping,
)

__all__ = [
    "DocumentGenerationError",
    "LayoutError",
    "UnsupportedDistributionError",
    "COMBINATIONS",
    "PAGE_NUMBERS",
    "LayoutPage",
    "LayoutType",
    "select_layouts",
    "Brochure",
    "GroupKind",
    "ImageGroup",
    "ImageItem",
    "Orientation",
    "SpecialImages",
    "ImageAnalyzer",
    "classify_dimensions",
    "GroupPlan",
    "PlaceholderMapping",
    "assign_placeholders",
    "fixed_images",
    "plan_group",
    "plan_stored_group",
    "special_mapping",
]
