from .project import ImageGroupState, Project, ProjectStatus, ProjectStore

__all__ = ["ImageGroupState", "Project", "ProjectStatus", "ProjectStore"]
