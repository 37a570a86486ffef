from .generation import create_slides_client, generate_project
from .groups import GroupSizeError, accept_group, group_state, store_group

__all__ = [
    "create_slides_client",
    "generate_project",
    "GroupSizeError",
    "accept_group",
    "group_state",
    "store_group",
]
