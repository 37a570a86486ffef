"""Google Slides / Drive client used to render a brochure."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import DocumentGenerationError
from .models import Brochure
from .requests import RequestBuilder, plan_brochure, slides_from_presentation

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/presentations",
]


@dataclass
class GenerationResult:
    document_id: str
    view_url: str
    edit_url: str
    language: str
    presentation_images: Dict[str, str] = field(default_factory=dict)
    request_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "view_url": self.view_url,
            "edit_url": self.edit_url,
            "language": self.language,
            "presentation_images": self.presentation_images,
            "request_count": self.request_count,
        }


def load_credentials(credentials: Optional[str]):
    """Service-account credentials from a key file path or inline JSON."""
    if not credentials:
        raise DocumentGenerationError(
            "Service account credentials not configured. Set slides.credentials in "
            "settings.toml or GOOGLE_APPLICATION_CREDENTIALS."
        )
    text = credentials.strip()
    if text.startswith("{"):
        try:
            info = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DocumentGenerationError(f"Invalid service account JSON: {exc}") from exc
        try:
            return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, KeyError) as exc:
            raise DocumentGenerationError(f"Invalid service account key: {exc}") from exc
    path = Path(text).expanduser()
    if not path.exists():
        raise DocumentGenerationError(f"Credentials file not found: {path}")
    try:
        return service_account.Credentials.from_service_account_file(str(path), scopes=SCOPES)
    except (ValueError, KeyError) as exc:
        raise DocumentGenerationError(f"Invalid service account key in {path}: {exc}") from exc


def presentation_urls(document_id: str, language: str) -> Dict[str, str]:
    lang = "de" if language == "de" else "en"
    base = f"https://docs.google.com/presentation/d/{document_id}"
    if lang == "de":
        edit_url = f"{base}/edit?hl=de&usp=sharing&ui=2&authuser=0"
    else:
        edit_url = f"{base}/edit?hl=en&usp=sharing"
    return {"view_url": f"{base}/view?hl={lang}", "edit_url": edit_url}


class SlidesClient:
    """Copies the template, fills it in one batch update, and shares it."""

    def __init__(self, slides_service=None, drive_service=None, credentials: Optional[str] = None) -> None:
        if slides_service is None or drive_service is None:
            creds = load_credentials(credentials)
            slides_service = slides_service or build("slides", "v1", credentials=creds, cache_discovery=False)
            drive_service = drive_service or build("drive", "v3", credentials=creds, cache_discovery=False)
            logger.info("Google API clients initialized")
        self.slides_service = slides_service
        self.drive_service = drive_service

    def _copy_template(self, template_id: str, language: str) -> str:
        stamp = datetime.now(timezone.utc).isoformat()
        name = f"Immobilien-Präsentation - {stamp}" if language == "de" else f"Property Presentation - {stamp}"
        properties = {
            "language": language,
            "preferredLanguage": language,
            "locale": "de_DE" if language == "de" else "en_US",
        }
        copied = (
            self.drive_service.files()
            .copy(fileId=template_id, body={"name": name, "properties": properties})
            .execute()
        )
        document_id = copied.get("id")
        if not document_id:
            raise DocumentGenerationError("Failed to create presentation copy", details=copied)
        logger.info("Copied template %s to %s", template_id, document_id)
        return document_id

    def _share(self, document_id: str) -> None:
        self.drive_service.permissions().create(
            fileId=document_id, body={"role": "writer", "type": "anyone"}
        ).execute()

    def _batch_update(self, document_id: str, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not requests:
            return {}
        response = (
            self.slides_service.presentations()
            .batchUpdate(presentationId=document_id, body={"requests": requests})
            .execute()
        )
        logger.info("Applied %d requests to %s", len(requests), document_id)
        return response

    def generate(self, brochure: Brochure, template_id: str) -> GenerationResult:
        """Render ``brochure`` into a new copy of ``template_id``.

        Layout problems (UnsupportedDistributionError) are raised before any
        remote call is made.
        """
        if not template_id:
            raise DocumentGenerationError("Template ID is required")
        language = brochure.language or "en"
        plans = plan_brochure(brochure)

        try:
            document_id = self._copy_template(template_id, language)
            self._share(document_id)
            presentation = self.slides_service.presentations().get(presentationId=document_id).execute()
            builder = RequestBuilder(brochure, slides_from_presentation(presentation), plans)
            requests = builder.build()
            self._batch_update(document_id, requests)
        except HttpError as exc:
            logger.error("Presentation service request failed: %s", exc, exc_info=True)
            raise DocumentGenerationError(f"Presentation service request failed: {exc}", details=str(exc)) from exc
        except GoogleAuthError as exc:
            logger.error("Google authentication failed: %s", exc, exc_info=True)
            raise DocumentGenerationError(f"Google authentication failed: {exc}", details=str(exc)) from exc

        urls = presentation_urls(document_id, language)
        return GenerationResult(
            document_id=document_id,
            view_url=urls["view_url"],
            edit_url=urls["edit_url"],
            language=language,
            presentation_images=builder.presentation_images(),
            request_count=len(requests),
        )
