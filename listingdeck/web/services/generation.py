"""Run document generation for a stored project."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ...core.errors import DocumentGenerationError, UnsupportedDistributionError
from ...core.slides_client import GenerationResult, SlidesClient
from ..models.project import ProjectStatus, ProjectStore
from ..settings import get_credentials_path, get_public_base_url, get_template_id

logger = logging.getLogger(__name__)


def create_slides_client() -> SlidesClient:
    return SlidesClient(credentials=get_credentials_path())


def generate_project(
    project_id: str,
    language: Optional[str] = None,
    client_factory: Optional[Callable[[], SlidesClient]] = None,
) -> GenerationResult:
    """Generate the brochure for ``project_id`` and store the result on it.

    Raises FileNotFoundError for unknown projects. Any error after the status
    moves to generating marks the project failed and propagates.
    """
    project = ProjectStore.load(project_id)
    if language:
        project.language = language
    template_id = project.template_id or get_template_id(project.language)
    base_url = get_public_base_url()
    if not base_url:
        logger.warning("public_base_url is not set; uploaded images are sent as relative paths")

    ProjectStore.update(project_id, status=ProjectStatus.GENERATING, message=None, language=project.language)
    try:
        client = (client_factory or create_slides_client)()
        result = client.generate(project.to_brochure(base_url), template_id)
    except (UnsupportedDistributionError, DocumentGenerationError) as exc:
        logger.error("Generation failed for project %s: %s", project_id, exc)
        ProjectStore.update(project_id, status=ProjectStatus.FAILED, message=str(exc))
        raise
    except Exception as exc:
        logger.exception("Unexpected error while generating project %s", project_id)
        ProjectStore.update(project_id, status=ProjectStatus.FAILED, message=f"Unexpected error: {exc}")
        raise

    ProjectStore.update(project_id, status=ProjectStatus.COMPLETED, result=result.to_dict())
    logger.info("Generated %s for project %s", result.document_id, project_id)
    return result
