"""Pytest configuration and shared fixtures for CDN Deploy tests."""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pytest

from blob_store import BlobItem, BlobOperationResult, BlobStore, BlobStoreError
from cdn_deploy.config import Config


class FakeBlobStore(BlobStore):
    """In-memory blob store that records every call in order."""

    def __init__(
        self,
        blobs: Optional[Dict[str, bytes]] = None,
        container_exists: bool = False,
        create_error: Optional[Exception] = None,
        create_delay: float = 0.0,
        upload_delay: float = 0.0,
        fail_uploads: tuple = (),
        fail_deletes: tuple = (),
        list_error: Optional[Exception] = None
    ):
        self.blobs: Dict[str, Dict[str, Any]] = {
            name: {"content": content, "metadata": {}} for name, content in (blobs or {}).items()
        }
        self.container_exists = container_exists
        self.create_error = create_error
        self.create_delay = create_delay
        self.upload_delay = upload_delay
        self.fail_uploads = set(fail_uploads)
        self.fail_deletes = set(fail_deletes)
        self.list_error = list_error

        self.calls: List[tuple] = []
        self.create_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def uploads(self) -> List[tuple]:
        return [call for call in self.calls if call[0] == "upload"]

    async def create_container_if_not_exists(
        self,
        name: str,
        options: Optional[Mapping[str, Any]] = None
    ) -> bool:
        self.create_calls += 1
        await asyncio.sleep(self.create_delay)
        self.calls.append(("create", name, dict(options or {})))
        if self.create_error is not None:
            raise self.create_error
        created = not self.container_exists
        self.container_exists = True
        return created

    async def list_blobs(self, container: str, prefix: str = "") -> List[BlobItem]:
        self.calls.append(("list", container, prefix))
        if self.list_error is not None:
            raise self.list_error
        return [
            BlobItem(name=name, url=self.blob_url(container, name))
            for name in sorted(self.blobs)
            if name.startswith(prefix)
        ]

    async def delete_blob(self, container: str, name: str) -> BlobOperationResult:
        await asyncio.sleep(0)
        self.calls.append(("delete", container, name))
        if name in self.fail_deletes:
            raise BlobStoreError(f"cannot delete {name}", code="InternalError")
        self.blobs.pop(name, None)
        return BlobOperationResult(container=container, name=name, url=self.blob_url(container, name))

    async def upload_file(
        self,
        container: str,
        name: str,
        file_path: str,
        metadata: Dict[str, str]
    ) -> BlobOperationResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append(("upload", container, name, file_path, dict(metadata)))
            content = Path(file_path).read_bytes()
            await asyncio.sleep(self.upload_delay)
            if name in self.fail_uploads:
                raise BlobStoreError(f"cannot upload {name}", code="InternalError")
            self.blobs[name] = {"content": content, "metadata": dict(metadata), "file_path": file_path}
        finally:
            self.in_flight -= 1
        return BlobOperationResult(container=container, name=name, url=self.blob_url(container, name))

    def blob_url(self, container: str, name: str) -> str:
        return f"https://cdn.example.test/{container}/{name}"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep CDN_DEPLOY_* variables and stray .env files out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("CDN_DEPLOY_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_config():
    """Build a Config with test defaults."""
    def factory(**overrides: Any) -> Config:
        values = {"container_name": "site"}
        values.update(overrides)
        return Config(**values)
    return factory


@pytest.fixture
def fake_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def site_dir(tmp_path) -> Path:
    """A small site with a compressible page, a draft and a nested asset."""
    root = tmp_path / "site"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<html>" + "hello world " * 200 + "</html>")
    (root / "_draft.html").write_text("not ready")
    (root / "css" / "main.css").write_text("body { color: red; }\n" * 50)
    return root


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
