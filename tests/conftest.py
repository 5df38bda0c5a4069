"""
Shared pytest fixtures for buildstash tests.

This module provides:
- MemoryHandle / memory_handle: in-memory IFileHandle
- artifact_file: a real file on disk of a chosen size
- fake_registry: MagicMock standing in for RegistryClient
- isolated_env: cwd, HOME and BUILDSTASH_* variables isolated per test
- container reset between tests
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from buildstash.core.models.registry import (
    BuildRecord,
    FileUploadInfo,
    PartUrlResponse,
    PresignedData,
    UploadRequestResponse,
)
from buildstash.registry_client import RegistryClient


class MemoryHandle:
    """IFileHandle over bytes held in memory."""

    def __init__(self, name: str, data: bytes, present: bool = True) -> None:
        self._name = name
        self.data = data
        self.present = present
        self.reads: list[tuple[int, int]] = []

    @property
    def name(self) -> str:
        return self._name

    def exists(self) -> bool:
        return self.present

    def length(self) -> int:
        return len(self.data)

    def read_range(self, start: int, end: int) -> bytes:
        self.reads.append((start, end))
        return self.data[start:end]


@pytest.fixture
def memory_handle() -> Callable[..., MemoryHandle]:
    """Factory for in-memory handles: memory_handle("app.bin", size=1024)."""

    def _make(name: str = "app.bin", size: int = 1024, data: bytes | None = None) -> MemoryHandle:
        if data is None:
            data = bytes(i % 251 for i in range(size))
        return MemoryHandle(name, data)

    return _make


@pytest.fixture
def artifact_file(tmp_path: Path) -> Callable[..., Path]:
    """Factory for files on disk: artifact_file("app.apk", size=2048)."""

    def _make(name: str = "app.apk", size: int = 1024) -> Path:
        path = tmp_path / name
        path.write_bytes(os.urandom(size))
        return path

    return _make


def direct_info(filename: str = "app.bin", url: str = "https://storage.test/direct") -> FileUploadInfo:
    return FileUploadInfo(
        filename=filename,
        chunked_upload=False,
        presigned_data=PresignedData(url=url, headers={"Content-Type": "application/octet-stream"}),
    )


@pytest.fixture
def fake_registry() -> MagicMock:
    """
    RegistryClient mock with a working happy path.

    - request_upload: one direct primary file under pending id "pu-1"
    - request_part_url: a URL per part number
    - put_presigned: returns an ETag derived from the URL
    - complete_upload: a published BuildRecord
    """
    client = MagicMock(spec=RegistryClient)
    client.request_upload.return_value = UploadRequestResponse(
        message="ok",
        pending_upload_id="pu-1",
        primary_file=direct_info(),
    )

    def part_url(pending_upload_id, *, file_role, filename, part_number, content_length):
        return PartUrlResponse(
            part_presigned_url=f"https://storage.test/{file_role}/part-{part_number}",
            part_number=part_number,
        )

    client.request_part_url.side_effect = part_url
    client.put_presigned.side_effect = lambda url, data, headers=None: f'"etag-{url.rsplit("/", 1)[-1]}"'
    client.complete_upload.return_value = BuildRecord(
        message="Build created",
        build_id="b-42",
        pending_processing=False,
        build_info_url="https://app.buildstash.test/builds/b-42",
        download_url="https://app.buildstash.test/builds/b-42/download",
    )
    return client


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in an empty directory with HOME redirected and no buildstash or CI variables."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in list(os.environ):
        if name.startswith(("BUILDSTASH_", "GIT_", "P4_")) or name in (
            "JOB_NAME",
            "BUILD_NUMBER",
            "BUILD_URL",
            "JOB_URL",
            "JENKINS_URL",
        ):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(work)
    return work


@pytest.fixture(autouse=True)
def reset_container():
    """Start every test with an empty service container."""
    from buildstash.core.bootstrap import reset

    reset()
    yield
    reset()
