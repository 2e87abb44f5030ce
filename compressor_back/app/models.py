from dataclasses import dataclass, field
from pathlib import Path
from pydantic import BaseModel
from typing import Tuple, Union
from enum import Enum


class ArtifactKind(str, Enum):
    SINGLE = "single"
    BULK = "bulk"


@dataclass(frozen=True)
class UploadedFile:
    temporary_path: Path
    original_name: str


@dataclass(frozen=True)
class TranscodeSuccess:
    source_name: str
    output_bytes: bytes
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class TranscodeFailure:
    source_name: str
    reason: str
    ok: bool = field(default=False, init=False)


TranscodeResult = Union[TranscodeSuccess, TranscodeFailure]


@dataclass(frozen=True)
class OutputArtifact:
    kind: ArtifactKind
    stored_name: str
    download_url: str
    failures: Tuple[TranscodeFailure, ...] = ()


class CompressResponse(BaseModel):
    type: ArtifactKind
    url: str


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    webp_supported: bool
    storage_used_mb: float
    file_count: int


class CleanupResponse(BaseModel):
    message: str
    files_removed: int
    space_freed_mb: float
