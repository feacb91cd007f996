# test/conftest.py
import io
import json
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
from PIL import Image

# Add the project root directory to the Python path to allow importing app modules
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Settings are read when app.main is imported, so the key must exist first
os.environ.setdefault("GEMINI_API_KEY", "test-key")

from app.config import Settings, get_settings  # noqa: E402
from app.dependencies import get_model_client  # noqa: E402

VALID_RECORD = {
    "species": {
        "name": "Monstera deliciosa (Swiss cheese plant)",
        "characteristics": "Large glossy leaves with natural holes",
        "family": "Araceae",
        "origin": "Central America",
    },
    "health": {
        "status": "Unhealthy",
        "issues": ["Yellowing lower leaves", "Brown leaf edges"],
        "assessment": "Mild overwatering stress",
    },
    "recommendations": {
        "care": ["Water when the top 5 cm of soil are dry", "Bright indirect light"],
        "treatment": ["Remove yellow leaves"],
        "notes": "Repot in spring if roots circle the pot",
    },
    "interesting_facts": "The fruit is edible once fully ripe.",
}

VALID_REPLY = "```json\n" + json.dumps(VALID_RECORD, indent=2) + "\n```"


class FakeModelClient:
    """Stands in for GeminiClient; records every call."""

    def __init__(self, reply: str = VALID_REPLY, error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Tuple[str, bytes, str]] = []

    async def generate_content(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        self.calls.append((prompt, image_bytes, mime_type))
        if self.error is not None:
            raise self.error
        return self.reply


def make_image_bytes(size=(32, 24), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (34, 139, 34)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def sample_png() -> bytes:
    return make_image_bytes()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        GEMINI_API_KEY="test-key",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        REPORTS_DIR=str(tmp_path / "reports"),
    )


@pytest.fixture
def fake_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def api_app(test_settings, fake_client):
    from app.main import app

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_model_client] = lambda: fake_client
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app):
    from fastapi.testclient import TestClient

    return TestClient(api_app)
