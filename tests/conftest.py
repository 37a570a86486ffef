from __future__ import annotations

import io
import struct
import zlib
from pathlib import Path
from typing import Any, Dict, List

import pytest
from PIL import Image

from listingdeck.core.layouts import PAGE_NUMBERS
from listingdeck.core.models import GroupKind
from listingdeck.core.placeholders import SLOT_NAMES, wrap_token

TEMPLATE_SLIDES = 19


def png_bytes(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 120, 40)).save(buf, format="PNG")
    return buf.getvalue()


def write_png(path: Path, width: int, height: int) -> Path:
    path.write_bytes(png_bytes(width, height))
    return path


def _png_chunk(tag: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", zlib.crc32(tag + data) & 0xFFFFFFFF)


def png_header_bytes(width: int, height: int) -> bytes:
    """A PNG that declares its size but carries no pixel data."""
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", header) + _png_chunk(b"IEND", b"")


def _image(object_id: str, title: str = "", description: str = "") -> Dict[str, Any]:
    return {"objectId": object_id, "title": title, "description": description, "image": {}}


def _layout_elements(page: int, prefix: str, layout) -> List[Dict[str, Any]]:
    h_slots, v_slots = SLOT_NAMES[layout]
    elements = []
    for slots in (h_slots, v_slots):
        for idx, pattern in enumerate(slots):
            slot = f"{prefix}_" + pattern.format(n=idx + 1)
            elements.append(_image(f"p{page}_{slot}", description=wrap_token(slot)))
    return elements


def template_presentation() -> Dict[str, Any]:
    """A 19-slide presentation shaped like the brochure template.

    Slide ids are ``s1``..``s19``; layout image ids are ``p<page>_<slot>``.
    """
    elements: Dict[int, List[Dict[str, Any]]] = {
        1: [_image("title_h", title="{{image1}}")],
        2: [_image("title_v", title="{{image1}}")],
        17: [_image("floor_plan_img", title="{{image7}}")],
        18: [_image("energy_img", title="{{image8}}")],
    }
    for page in range(3, 7):
        elements[page] = [{"objectId": f"shape{page}", "shape": {"shapeType": "TEXT_BOX"}}]
    for kind in GroupKind:
        for layout, page in PAGE_NUMBERS[kind].items():
            elements[page] = _layout_elements(page, kind.prefix, layout)
    return {
        "presentationId": "template",
        "slides": [
            {"objectId": f"s{page}", "pageElements": elements.get(page, [])}
            for page in range(1, TEMPLATE_SLIDES + 1)
        ],
    }


class _Call:
    def __init__(self, result: Any) -> None:
        self._result = result

    def execute(self) -> Any:
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class _Presentations:
    def __init__(self, service: "FakeSlidesService") -> None:
        self.service = service

    def get(self, presentationId: str) -> _Call:
        self.service.fetched.append(presentationId)
        return _Call(self.service.presentation)

    def batchUpdate(self, presentationId: str, body: Dict[str, Any]) -> _Call:
        self.service.batches.append((presentationId, body["requests"]))
        return _Call(self.service.batch_error or {"replies": []})


class FakeSlidesService:
    def __init__(self, presentation: Dict[str, Any] | None = None, batch_error: Exception | None = None) -> None:
        self.presentation = presentation or template_presentation()
        self.batch_error = batch_error
        self.fetched: List[str] = []
        self.batches: List[tuple] = []

    def presentations(self) -> _Presentations:
        return _Presentations(self)


class _Files:
    def __init__(self, service: "FakeDriveService") -> None:
        self.service = service

    def copy(self, fileId: str, body: Dict[str, Any]) -> _Call:
        self.service.copies.append((fileId, body))
        return _Call(self.service.copy_result)


class _Permissions:
    def __init__(self, service: "FakeDriveService") -> None:
        self.service = service

    def create(self, fileId: str, body: Dict[str, Any]) -> _Call:
        self.service.permissions_created.append((fileId, body))
        return _Call({"id": "perm1"})


class FakeDriveService:
    def __init__(self, document_id: str | None = "doc123") -> None:
        self.copy_result: Dict[str, Any] = {"id": document_id} if document_id else {}
        self.copies: List[tuple] = []
        self.permissions_created: List[tuple] = []

    def files(self) -> _Files:
        return _Files(self)

    def permissions(self) -> _Permissions:
        return _Permissions(self)


@pytest.fixture
def storage(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated project storage with default settings."""
    root = tmp_path / "projects"
    monkeypatch.setenv("LISTINGDECK_SETTINGS", str(tmp_path / "missing-settings.toml"))
    monkeypatch.setenv("LISTINGDECK_STORAGE_ROOT", str(root))
    for name in (
        "LISTINGDECK_TEMPLATE_ID",
        "LISTINGDECK_CREDENTIALS",
        "LISTINGDECK_PUBLIC_BASE_URL",
        "LISTINGDECK_ROOT_PATH",
        "GOOGLE_APPLICATION_CREDENTIALS",
    ):
        monkeypatch.delenv(name, raising=False)
    return root
