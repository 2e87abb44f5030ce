"""Shared fixtures: generated images, store, pipeline and API client."""

import io
from pathlib import Path

import pytest
from PIL import Image
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.models import UploadedFile
from app.services.batch_pipeline import BatchPipeline
from app.services.output_store import OutputStore
from app.services.transcoder import ImageTranscoder, TranscodeProfile


def image_bytes(size=(320, 240), mode="RGB", fmt="PNG", color=(200, 40, 40)) -> bytes:
    """Encode a solid-colour image in memory."""
    if mode in ("L", "P"):
        color = 128
    elif mode == "RGBA":
        color = (*color[:3], 128)
    elif mode == "CMYK":
        color = (10, 80, 80, 0)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def open_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def make_upload(upload_dir):
    """Write bytes into the upload dir and return an UploadedFile."""
    counter = {"n": 0}

    def _make(original_name: str, data: bytes) -> UploadedFile:
        counter["n"] += 1
        temp_path = upload_dir / f"{counter['n']}-{Path(original_name).name}"
        temp_path.write_bytes(data)
        return UploadedFile(temporary_path=temp_path, original_name=original_name)

    return _make


@pytest.fixture
def store(tmp_path) -> OutputStore:
    output_store = OutputStore(tmp_path / "outputs")
    output_store.ensure()
    return output_store


@pytest.fixture
def pipeline(store) -> BatchPipeline:
    return BatchPipeline(store=store, transcoder=ImageTranscoder(TranscodeProfile()), max_workers=2)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        upload_dir=tmp_path / "api_uploads",
        output_dir=tmp_path / "api_outputs",
        output_retention_hours=0,
        max_file_size=5 * 1024 * 1024,
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
