from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from conftest import FakeDriveService, FakeSlidesService, png_bytes, png_header_bytes
from listingdeck.core.slides_client import SlidesClient
from listingdeck.web.main import create_app
from listingdeck.web.models.project import ProjectStatus, ProjectStore
from listingdeck.web.routes import upload
from listingdeck.web.services import generation

WIDE = png_bytes(60, 30)
TALL = png_bytes(30, 60)


@pytest.fixture
def client(storage: Path) -> TestClient:
    return TestClient(create_app())


def _create(client: TestClient, **payload) -> str:
    response = client.post("/api/projects", json={"title": "Villa", **payload})
    assert response.status_code == 201
    return response.json()["id"]


def _upload(client: TestClient, project_id: str, kind: str, images: list, **data):
    files = [("files", (f"img{i}.png", content, "image/png")) for i, content in enumerate(images)]
    return client.post("/api/upload", files=files, data={"kind": kind, "project_id": project_id, **data})


def _put_group(client: TestClient, project_id: str, kind: str, urls: list, orientations: dict):
    return client.put(
        f"/api/projects/{project_id}/images/{kind}",
        json={"urls": urls, "orientations": orientations},
    )


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_project_crud(client: TestClient, storage: Path) -> None:
    project_id = _create(client, business_fields={"city": "Berlin"})
    assert (storage / project_id / "project.json").exists()

    response = client.patch(
        f"/api/projects/{project_id}",
        json={
            "business_fields": {"city": "Munich"},
            "selected_pages": {"amenities": False},
            "language": "de",
            "logo": "https://cdn.example.com/logo.png",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["business_fields"] == {"city": "Munich"}
    assert body["selected_pages"] == {"amenities": False}
    assert body["title"] == "Villa"
    assert body["logo"] == "https://cdn.example.com/logo.png"
    too_many = client.patch(f"/api/projects/{project_id}", json={"city_images": ["a", "b", "c", "d", "e"]})
    assert too_many.status_code == 422

    assert [p["id"] for p in client.get("/api/projects").json()] == [project_id]
    assert client.delete(f"/api/projects/{project_id}").status_code == 204
    assert client.get(f"/api/projects/{project_id}").status_code == 404


def test_unknown_project_is_404(client: TestClient) -> None:
    assert client.get("/api/projects/nope").status_code == 404
    assert client.get("/api/layout", params={"project_id": "0" * 32}).status_code == 404


def test_upload_classifies_and_selects_layouts(client: TestClient) -> None:
    project_id = _create(client)
    response = _upload(client, project_id, "exterior", [WIDE, WIDE, WIDE, TALL])
    assert response.status_code == 200
    body = response.json()
    assert body["orientations"] == {"0": "horizontal", "1": "horizontal", "2": "horizontal", "3": "vertical"}
    assert body["layout_pages"] == [7, 10, 11]
    assert "warnings" not in body

    stored = ProjectStore.load(project_id)
    assert stored.status is ProjectStatus.UPLOADED
    assert stored.exterior.images[0] == f"/api/projects/{project_id}/files/img0.png"
    assert client.get(stored.exterior.images[3]).content == TALL


def test_upload_appends_to_existing_group(client: TestClient) -> None:
    project_id = _create(client)
    _upload(client, project_id, "interior", [TALL, TALL])
    body = _upload(client, project_id, "interior", [TALL, TALL]).json()
    assert len(body["images"]) == 4
    assert body["layout_pages"] == [13]


def test_upload_truncates_to_six(client: TestClient) -> None:
    project_id = _create(client)
    body = _upload(client, project_id, "exterior", [WIDE] * 7).json()
    assert len(body["images"]) == 6
    assert body["layout_pages"] == [7, 7, 7]
    assert "first 6" in body["warnings"][0]


def test_upload_rejects_single_image_group(client: TestClient) -> None:
    project_id = _create(client)
    response = _upload(client, project_id, "exterior", [WIDE])
    assert response.status_code == 400
    assert "At least 2" in response.json()["detail"]
    assert ProjectStore.load(project_id).exterior.images == []


def test_upload_rejects_unknown_kind(client: TestClient) -> None:
    project_id = _create(client)
    assert _upload(client, project_id, "garden", [WIDE, WIDE]).status_code == 400


def test_upload_without_project_creates_one(client: TestClient) -> None:
    response = _upload(client, "", "title", [TALL])
    assert response.status_code == 200
    project = ProjectStore.load(response.json()["project_id"])
    assert project.title_orientation.value == "vertical"
    assert project.title_image.endswith("/files/img0.png")


def test_set_and_remove_group_images(client: TestClient) -> None:
    project_id = _create(client)
    response = _put_group(client, project_id, "exterior", ["h1", "h2", "h3", "v1"], {"3": "vertical"})
    assert response.json()["layout_pages"] == [7, 10, 11]

    assert _put_group(client, project_id, "exterior", ["h1"], {}).status_code == 400
    assert _put_group(client, project_id, "patio", ["h1", "h2"], {}).status_code == 404

    response = client.delete(f"/api/projects/{project_id}/images/exterior", params={"url": "v1"})
    assert response.status_code == 200
    assert response.json()["images"] == ["h1", "h2", "h3"]
    assert response.json()["layout_pages"] == [7, 11]

    cleared = _put_group(client, project_id, "exterior", [], {}).json()
    assert cleared["images"] == [] and cleared["layout_pages"] == []


def test_layout_preview(client: TestClient) -> None:
    project_id = _create(client)
    _put_group(client, project_id, "interior", ["h1", "h2", "h3", "h4", "v1", "v2"], {"4": "vertical", "5": "vertical"})
    response = client.get("/api/layout", params={"project_id": project_id})
    assert response.status_code == 200
    body = response.json()
    assert body["exterior"] is None
    assert body["interior"]["layouts"] == ["A", "A", "D", "D"]
    assert body["interior"]["mapping"]["15"] == [{"int_d_vimg": "v1"}, {"int_d_vimg": "v2"}]
    assert body["special"] == {}


def test_layout_preview_rejects_incomplete_group(client: TestClient) -> None:
    project_id = _create(client)
    _put_group(client, project_id, "exterior", ["h1", "h2"], {})
    client.delete(f"/api/projects/{project_id}/images/exterior", params={"url": "h2"})
    response = client.get("/api/layout", params={"project_id": project_id})
    assert response.status_code == 422
    assert "Unsupported image distribution" in response.json()["detail"]
    assert response.json()["horizontal"] == 1


def test_validation_errors_are_joined(client: TestClient) -> None:
    response = client.get("/api/layout")
    assert response.status_code == 422
    assert "project_id" in response.json()["detail"]


def _fake_client(monkeypatch: pytest.MonkeyPatch, slides: FakeSlidesService) -> FakeDriveService:
    drive = FakeDriveService()
    monkeypatch.setattr(
        generation,
        "create_slides_client",
        lambda: SlidesClient(slides_service=slides, drive_service=drive),
    )
    return drive


def test_generate_stores_result(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    slides = FakeSlidesService()
    drive = _fake_client(monkeypatch, slides)
    monkeypatch.setenv("LISTINGDECK_PUBLIC_BASE_URL", "https://deck.example.com/")
    project_id = _create(client, template_id="tpl", business_fields={"city": "Berlin"})
    _upload(client, project_id, "exterior", [WIDE, TALL])

    response = client.post("/api/generate", params={"project_id": project_id, "language": "de"})
    assert response.status_code == 200
    body = response.json()
    assert body["document_id"] == "doc123"
    assert body["language"] == "de"
    assert drive.copies[0][0] == "tpl"

    sent = slides.batches[0][1]
    urls = {r["replaceImage"]["url"] for r in sent if "replaceImage" in r}
    assert f"https://deck.example.com/api/projects/{project_id}/files/img0.png" in urls

    project = ProjectStore.load(project_id)
    assert project.status is ProjectStatus.COMPLETED
    assert project.language == "de"
    assert project.result["document_id"] == "doc123"


def test_generate_failure_marks_project_failed(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    error = HttpError(SimpleNamespace(status=500, reason="Backend Error"), b"boom")
    _fake_client(monkeypatch, FakeSlidesService(batch_error=error))
    project_id = _create(client, template_id="tpl")

    response = client.post("/api/generate", params={"project_id": project_id})
    assert response.status_code == 502
    project = ProjectStore.load(project_id)
    assert project.status is ProjectStatus.FAILED
    assert "Presentation service request failed" in project.message


def test_generate_unsupported_distribution(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_client(monkeypatch, FakeSlidesService())
    project_id = _create(client, template_id="tpl")
    _put_group(client, project_id, "interior", ["a", "b"], {})
    client.delete(f"/api/projects/{project_id}/images/interior", params={"url": "b"})

    response = client.post("/api/generate", params={"project_id": project_id})
    assert response.status_code == 422
    assert response.json()["kind"] == "interior"
    assert ProjectStore.load(project_id).status is ProjectStatus.FAILED


def test_generate_unknown_project(client: TestClient) -> None:
    assert client.post("/api/generate", params={"project_id": "f" * 32}).status_code == 404


def test_generate_auth_failure_marks_project_failed(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_client(monkeypatch, FakeSlidesService(batch_error=RefreshError("invalid_grant")))
    project_id = _create(client, template_id="tpl")

    response = client.post("/api/generate", params={"project_id": project_id})
    assert response.status_code == 502
    project = ProjectStore.load(project_id)
    assert project.status is ProjectStatus.FAILED
    assert "Google authentication failed" in project.message


def test_generate_with_malformed_key_marks_project_failed(
    client: TestClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    key = tmp_path / "key.json"
    key.write_text('{"type": "service_account"}', encoding="utf-8")
    monkeypatch.setenv("LISTINGDECK_CREDENTIALS", str(key))
    project_id = _create(client, template_id="tpl")

    response = client.post("/api/generate", params={"project_id": project_id})
    assert response.status_code == 502
    assert ProjectStore.load(project_id).status is ProjectStatus.FAILED


def test_upload_over_pixel_limit_is_stored_as_horizontal(client: TestClient) -> None:
    project_id = _create(client)
    response = _upload(client, project_id, "exterior", [WIDE, png_header_bytes(20000, 40000)])
    assert response.status_code == 200
    assert response.json()["orientations"] == {"0": "horizontal", "1": "horizontal"}
    assert response.json()["layout_pages"] == [7]


def test_upload_keeps_changes_made_while_saving(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    project_id = _create(client)
    save = upload._save

    async def save_during_edit(file, base, max_bytes):
        ProjectStore.update(project_id, logo="/logo.png")
        return await save(file, base, max_bytes)

    monkeypatch.setattr(upload, "_save", save_during_edit)
    assert _upload(client, project_id, "exterior", [WIDE, TALL]).status_code == 200
    stored = ProjectStore.load(project_id)
    assert stored.logo == "/logo.png"
    assert len(stored.exterior.images) == 2


def test_rejected_upload_removes_saved_files(client: TestClient, storage: Path) -> None:
    project_id = _create(client)
    assert _upload(client, project_id, "exterior", [WIDE]).status_code == 400
    assert list((storage / project_id / "uploads").iterdir()) == []


def test_upload_fixed_images(client: TestClient) -> None:
    project_id = _create(client)
    logo = _upload(client, project_id, "logo", [WIDE]).json()
    assert logo["url"].endswith("/files/img0.png")

    body = _upload(client, project_id, "city_images", [WIDE, WIDE, WIDE]).json()
    assert len(body["images"]) == 3
    body = _upload(client, project_id, "city_images", [TALL, TALL]).json()
    assert len(body["images"]) == 4
    assert "first 4 city images" in body["warnings"][0]

    stored = ProjectStore.load(project_id)
    assert stored.logo == logo["url"]
    assert stored.city_images == body["images"]

    preview = client.get("/api/layout", params={"project_id": project_id}).json()
    assert preview["fixed"]["logo"] == logo["url"]
    assert sorted(k for k in preview["fixed"] if k.startswith("cityimg")) == [
        "cityimg1",
        "cityimg2",
        "cityimg3",
        "cityimg4",
    ]
