# test/test_api.py
"""End-to-end tests of the HTTP endpoints with the upstream model faked out."""
import asyncio
import re
from pathlib import Path

import httpx
import pytest

from app.dependencies import get_report_renderer
from app.exceptions import AnalysisFailure
from app.services.report import ReportRenderer
from conftest import VALID_RECORD, make_image_bytes

RECORD_FIELDS = {"success", "species", "health", "recommendations", "interesting_facts", "image"}


def dir_entries(path: str):
    directory = Path(path)
    return list(directory.iterdir()) if directory.exists() else []


# --- /analyze ---

def test_analyze_without_file_returns_400(client, fake_client):
    response = client.post("/analyze")

    assert response.status_code == 400
    assert response.json() == {"error": "No image file uploaded"}
    assert fake_client.calls == []


def test_analyze_with_wrong_field_name_returns_400(client, sample_png):
    response = client.post("/analyze", files={"photo": ("leaf.png", sample_png, "image/png")})
    assert response.status_code == 400


def test_analyze_with_two_files_returns_400(client, sample_png):
    files = [
        ("image", ("a.png", sample_png, "image/png")),
        ("image", ("b.png", sample_png, "image/png")),
    ]
    response = client.post("/analyze", files=files)
    assert response.status_code == 400


def test_analyze_rejects_unsupported_type(client):
    response = client.post("/analyze", files={"image": ("notes.txt", b"hello", "text/plain")})

    assert response.status_code == 400
    assert "Invalid file type" in response.json()["error"]


def test_analyze_with_text_field_instead_of_file_returns_400(client, fake_client):
    # A second, unrelated part forces a multipart body
    response = client.post(
        "/analyze",
        data={"image": "not-a-file"},
        files={"note": ("note.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "No image file uploaded"}
    assert fake_client.calls == []


def test_analyze_rejects_heic_the_report_cannot_embed(client, fake_client):
    response = client.post("/analyze", files={"image": ("leaf.heic", b"\x00\x00\x00\x1cftypheic", "image/heic")})

    assert response.status_code == 400
    assert "Invalid file type" in response.json()["error"]
    assert fake_client.calls == []


def test_analyze_rejects_oversized_upload(client, test_settings, sample_png):
    test_settings.MAX_UPLOAD_SIZE = 10
    response = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})

    assert response.status_code == 413
    assert dir_entries(test_settings.UPLOAD_DIR) == []


def test_analyze_returns_full_record(client, fake_client, test_settings, sample_png):
    response = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})

    assert response.status_code == 200, response.text
    data = response.json()
    assert set(data) == RECORD_FIELDS
    assert data["success"] is True
    assert data["species"] == VALID_RECORD["species"]
    assert data["health"] == VALID_RECORD["health"]
    assert data["recommendations"] == VALID_RECORD["recommendations"]
    assert re.fullmatch(r"data:image/png;base64,[A-Za-z0-9+/]+=*", data["image"])
    assert fake_client.calls[0][1] == sample_png
    assert dir_entries(test_settings.UPLOAD_DIR) == [], "Temporary upload was not removed"


def test_analyze_fills_defaults_for_sparse_reply(client, fake_client, sample_png):
    fake_client.reply = 'Here you go: {"species": {"name": "Aloe vera"}}'
    response = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})

    assert response.status_code == 200
    data = response.json()
    assert data["species"]["name"] == "Aloe vera"
    assert data["health"] == {"status": "Unknown", "issues": [], "assessment": ""}
    assert data["recommendations"] == {"care": [], "treatment": [], "notes": ""}
    assert data["interesting_facts"] == ""


def test_analyze_unparseable_reply_returns_500(client, fake_client, test_settings, sample_png):
    fake_client.reply = "I'm not able to identify this plant."
    response = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "Plant analysis failed"
    assert data["details"]
    assert dir_entries(test_settings.UPLOAD_DIR) == []


def test_analyze_upstream_failure_returns_500(client, fake_client, test_settings, sample_png):
    fake_client.error = AnalysisFailure("AI model request failed: 503 overloaded")
    response = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Plant analysis failed",
        "details": "AI model request failed: 503 overloaded",
    }
    assert dir_entries(test_settings.UPLOAD_DIR) == []

    # A failed request does not affect the next one
    fake_client.error = None
    response = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})
    assert response.status_code == 200


# --- /download ---

def assert_pdf_attachment(response):
    assert response.status_code == 200, response.text
    assert response.headers["content-type"] == "application/pdf"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith("attachment")
    assert re.search(r'filename="PlantReport_\d+\.pdf"', disposition)
    assert response.content.startswith(b"%PDF")


def test_download_minimal_record(client, test_settings):
    payload = {"health": {"issues": []}, "recommendations": {"care": []}}
    response = client.post("/download", json=payload)

    assert_pdf_attachment(response)
    assert dir_entries(test_settings.REPORTS_DIR) == [], "Temporary report was not removed"


def test_download_empty_object_uses_defaults(client):
    assert_pdf_attachment(client.post("/download", json={}))


def test_download_invalid_json_returns_500(client):
    response = client.post("/download", content=b"{not json", headers={"content-type": "application/json"})

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "Failed to generate report"


def test_download_non_object_body_returns_500(client):
    response = client.post("/download", json=["species"])
    assert response.status_code == 500


def test_download_deeply_nested_body_returns_structured_500(client):
    body = b"[" * 100000 + b"]" * 100000
    response = client.post("/download", content=body, headers={"content-type": "application/json"})

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"] == "Failed to generate report"


def test_download_broken_image_returns_500_without_leftovers(client, test_settings):
    response = client.post("/download", json={**VALID_RECORD, "image": "data:image/png;base64,AAAA"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to generate report"
    assert dir_entries(test_settings.REPORTS_DIR) == []


def test_analyze_result_renders_as_report(client, test_settings, sample_png):
    analysis = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})
    assert analysis.status_code == 200

    response = client.post("/download", json=analysis.json())

    assert_pdf_attachment(response)
    assert dir_entries(test_settings.REPORTS_DIR) == []


@pytest.mark.parametrize(
    "fmt, mime_type",
    [("PNG", "image/png"), ("JPEG", "image/jpeg"), ("WEBP", "image/webp")],
    ids=["png", "jpeg", "webp"],
)
def test_every_accepted_upload_type_renders_as_report(client, fmt, mime_type):
    image_bytes = make_image_bytes(fmt=fmt)
    analysis = client.post("/analyze", files={"image": (f"leaf.{fmt.lower()}", image_bytes, mime_type)})
    assert analysis.status_code == 200, analysis.text
    assert analysis.json()["image"].startswith(f"data:{mime_type};base64,")

    assert_pdf_attachment(client.post("/download", json=analysis.json()))


def test_sparse_analysis_result_renders_as_report(client, fake_client, sample_png):
    fake_client.reply = "{}"
    analysis = client.post("/analyze", files={"image": ("leaf.png", sample_png, "image/png")})
    assert analysis.status_code == 200

    assert_pdf_attachment(client.post("/download", json=analysis.json()))


class RecordingRenderer(ReportRenderer):
    def __init__(self, reports_dir):
        super().__init__(reports_dir)
        self.paths = []

    def render(self, record, image=None):
        report = super().render(record, image)
        self.paths.append(report.path)
        return report


@pytest.mark.asyncio
async def test_concurrent_downloads_do_not_collide(api_app, test_settings):
    renderer = RecordingRenderer(test_settings.REPORTS_DIR)
    api_app.dependency_overrides[get_report_renderer] = lambda: renderer
    payloads = [{"species": {"name": f"Plant number {i}"}} for i in range(4)]

    transport = httpx.ASGITransport(app=api_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as async_client:
        responses = await asyncio.gather(
            *(async_client.post("/download", json=payload) for payload in payloads)
        )

    for response in responses:
        assert_pdf_attachment(response)
    assert len({response.content for response in responses}) == len(payloads)
    assert len(set(renderer.paths)) == len(payloads)
    assert not any(path.exists() for path in renderer.paths)


# --- misc ---

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_openapi_lists_endpoints(client):
    schema = client.get("/openapi.json").json()
    assert schema["info"]["title"] == "Plant Report API"
    assert "/analyze" in schema["paths"]
    assert "/download" in schema["paths"]
