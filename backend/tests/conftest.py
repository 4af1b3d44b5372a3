"""Pytest configuration and fixtures."""
import shutil
import tempfile
from typing import Dict, List, Optional
from unittest.mock import Mock, AsyncMock

import pytest

from kbbot.exceptions import CompletionError, DocumentStoreError
from kbbot.models.document import RemoteFile
from kbbot.services.llm_service import LLMService
from kbbot.services.sync_orchestrator import SyncOrchestrator
from kbbot.services.sync_state import SyncState


def remote(name: str, sha: str = "sha-1", size: int = 100, url: Optional[str] = None, type: str = "file") -> RemoteFile:
    """Build a listing entry; the download URL defaults to one derived from the name."""
    return RemoteFile(
        name=name,
        fingerprint=sha,
        size_bytes=size,
        download_url=url if url is not None else f"https://raw.example/{name}",
        type=type,
    )


class FakeDocumentStore:
    """In-memory stand-in for the GitHub document store."""

    def __init__(self):
        self.folders: Dict[str, List[RemoteFile]] = {}
        self.contents: Dict[str, str] = {}
        self.failing_folders = set()
        self.failing_paths = set()
        self.failing_urls = set()
        self.list_calls: List[str] = []

    def add(self, folder: str, entry: RemoteFile, content: Optional[str] = None) -> RemoteFile:
        self.folders.setdefault(folder, []).append(entry)
        if content is not None:
            self.contents[entry.download_url] = content
        return entry

    def remove(self, folder: str, name: str) -> None:
        self.folders[folder] = [f for f in self.folders.get(folder, []) if f.name != name]

    def replace(self, folder: str, entry: RemoteFile) -> None:
        self.folders[folder] = [entry if f.name == entry.name else f for f in self.folders.get(folder, [])]

    async def list_documents(self, folder: str) -> List[RemoteFile]:
        self.list_calls.append(folder)
        if folder in self.failing_folders:
            raise DocumentStoreError(f"Failed to list {folder}: 503")
        return list(self.folders.get(folder, []))

    async def get_file(self, path: str) -> Optional[RemoteFile]:
        if path in self.failing_paths:
            raise DocumentStoreError(f"Failed to look up {path}: 500")
        folder, _, name = path.rpartition("/")
        for entry in self.folders.get(folder, []):
            if entry.name == name:
                return entry
        return None

    async def fetch_content(self, download_url: str) -> str:
        if download_url in self.failing_urls or download_url not in self.contents:
            raise DocumentStoreError(f"Failed to download {download_url}")
        return self.contents[download_url]

    async def close(self):
        pass


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def document_store():
    """Empty fake document store."""
    return FakeDocumentStore()


@pytest.fixture
def sync_state():
    return SyncState(log_limit=50)


@pytest.fixture
def orchestrator(document_store, sync_state):
    return SyncOrchestrator(document_store=document_store, state=sync_state)


@pytest.fixture
def processed_markdown():
    """Processed markdown with two chunk sections."""
    return (
        "# manual\n\n**文件信息:**\n- 页数: 2\n\n---\n\n"
        "## 内容块 1\n\nCats are mammals。\n\n---\n\n"
        "## 内容块 2\n\nDogs bark loudly。\n\n---\n\n"
    )


@pytest.fixture
def mock_llm_service():
    """Mock LLM service."""
    service = Mock(spec=LLMService)
    service.complete = AsyncMock(return_value="This is a test answer.")
    return service


@pytest.fixture
def failing_llm_service():
    service = Mock(spec=LLMService)
    service.complete = AsyncMock(side_effect=CompletionError("Failed to generate answer: 502"))
    return service
