"""Tests for upload saving and transient file cleanup."""

import asyncio
import io

import pytest
from fastapi import UploadFile

from app.utils.file_handler import UploadTooLargeError, cleanup_file, save_upload_file


def test_cleanup_removes_file(tmp_path):
    path = tmp_path / "upload.png"
    path.write_bytes(b"x")

    assert cleanup_file(path) is True
    assert not path.exists()


def test_cleanup_missing_file_is_not_an_error(tmp_path):
    assert cleanup_file(tmp_path / "missing.png") is False


def test_cleanup_directory_is_logged_not_raised(tmp_path):
    directory = tmp_path / "dir"
    directory.mkdir()

    assert cleanup_file(directory) is False
    assert directory.exists()


def test_save_upload_file(tmp_path):
    payload = b"a" * (3 * 1024 * 1024 + 17)
    upload = UploadFile(file=io.BytesIO(payload), filename="big.png")
    destination = tmp_path / "saved.png"

    asyncio.run(save_upload_file(upload, destination))

    assert destination.read_bytes() == payload


def test_save_upload_file_over_limit(tmp_path):
    upload = UploadFile(file=io.BytesIO(b"a" * (2 * 1024 * 1024)), filename="big.png")
    destination = tmp_path / "saved.png"

    with pytest.raises(UploadTooLargeError) as exc_info:
        asyncio.run(save_upload_file(upload, destination, max_size=1024 * 1024))

    assert exc_info.value.filename == "big.png"
    assert not destination.exists()
