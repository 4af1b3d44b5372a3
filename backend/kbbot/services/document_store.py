"""Document store client backed by the GitHub contents API."""
from typing import Dict, List, Optional

import httpx

from kbbot.exceptions import DocumentStoreError
from kbbot.models.document import RemoteFile
from kbbot.utils.logger import logger


class GitHubDocumentStore:
    """Lists and downloads files kept in a GitHub repository."""

    def __init__(
        self,
        repo: str,
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize document store client.

        Args:
            repo: Repository in ``owner/name`` form
            token: Optional access token
            api_url: GitHub API base URL
            timeout: Timeout in seconds for every request
            http_client: Optional preconfigured client (used by tests)
        """
        if not repo:
            raise ValueError("GITHUB_REPO is required")

        self.repo = repo
        self.api_url = api_url.rstrip("/")
        headers: Dict[str, str] = {"Accept": "application/vnd.github.v3+json"}
        if token:
            headers["Authorization"] = f"token {token}"
        self.client = http_client or httpx.AsyncClient(timeout=timeout, headers=headers)

    def _contents_url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.repo}/contents/{path.strip('/')}"

    async def list_documents(self, folder: str) -> List[RemoteFile]:
        """
        List the entries of a repository folder.

        Args:
            folder: Folder path inside the repository

        Returns:
            RemoteFile for every entry, in listing order

        Raises:
            DocumentStoreError: If the folder cannot be listed
        """
        try:
            response = await self.client.get(self._contents_url(folder))
            response.raise_for_status()
            entries = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DocumentStoreError(f"Failed to list {folder}: {str(e)}") from e

        if not isinstance(entries, list):
            raise DocumentStoreError(f"{folder} is not a folder")

        files = [RemoteFile.from_listing(entry) for entry in entries]
        logger.debug(f"Listed {len(files)} entries in {folder}")
        return files

    async def get_file(self, path: str) -> Optional[RemoteFile]:
        """
        Look up a single file.

        Returns:
            The file, or None when the store answers 404

        Raises:
            DocumentStoreError: On any other failure
        """
        try:
            response = await self.client.get(self._contents_url(path))
            if response.status_code == 404:
                return None
            response.raise_for_status()
            entry = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DocumentStoreError(f"Failed to look up {path}: {str(e)}") from e

        if not isinstance(entry, dict):
            return None
        return RemoteFile.from_listing(entry)

    async def fetch_content(self, download_url: str) -> str:
        """
        Download a file as text.

        Raises:
            DocumentStoreError: If the download fails
        """
        if not download_url:
            raise DocumentStoreError("File has no download URL")
        try:
            response = await self.client.get(download_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DocumentStoreError(f"Failed to download {download_url}: {str(e)}") from e
        return response.text

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
