"""Assembles the corpus text from the document store for each question."""
from typing import List, Tuple

from kbbot.exceptions import DocumentStoreError, EmptyCorpusError, TransportError
from kbbot.models.document import CorpusSnapshot, RemoteFile
from kbbot.services.document_store import GitHubDocumentStore
from kbbot.utils.logger import logger
from kbbot.utils.metrics import CORPUS_FALLBACKS


KNOWLEDGE_UNAVAILABLE = "知识库暂时不可用，请稍后重试。"
KNOWLEDGE_PROCESSING = "知识库正在处理中，请稍后重试。"

SIMPLE_EXTENSIONS: Tuple[str, ...] = (".md", ".txt")
PROCESSED_EXTENSIONS: Tuple[str, ...] = (".md",)


def format_block(name: str, content: str) -> str:
    """Wrap one document's text with its name header."""
    return f"\n--- {name} ---\n{content}\n"


class CorpusLoader:
    """Reads the corpus from the store; nothing is cached between calls."""

    def __init__(
        self,
        document_store: GitHubDocumentStore,
        mode: str = "simple",
        knowledge_folder: str = "knowledge",
        processed_folder: str = "processed",
    ):
        """
        Initialize corpus loader.

        Args:
            document_store: Client for listing and downloading files
            mode: ``simple`` (plain knowledge folder) or ``rag`` (processed folder)
            knowledge_folder: Folder with plain markdown/text knowledge
            processed_folder: Folder with pre-chunked markdown
        """
        if mode not in ("simple", "rag"):
            raise ValueError(f"Unknown knowledge base type: {mode}")

        self.document_store = document_store
        self.mode = mode
        self.knowledge_folder = knowledge_folder
        self.processed_folder = processed_folder

    async def _list(self, folder: str, extensions: Tuple[str, ...]) -> List[RemoteFile]:
        entries = await self.document_store.list_documents(folder)
        return [entry for entry in entries if entry.name.endswith(extensions)]

    async def load_simple(self) -> CorpusSnapshot:
        """
        Concatenate every markdown/text file of the knowledge folder.

        Any store failure yields the "unavailable" placeholder.
        """
        try:
            files = await self._list(self.knowledge_folder, SIMPLE_EXTENSIONS)
            knowledge = ""
            for remote in files:
                content = await self.document_store.fetch_content(remote.download_url)
                knowledge += format_block(remote.name, content)
        except TransportError as e:
            logger.error(f"Failed to load knowledge base: {str(e)}")
            CORPUS_FALLBACKS.labels(tier="placeholder").inc()
            return CorpusSnapshot(text=KNOWLEDGE_UNAVAILABLE, source="placeholder")

        logger.info(
            f"Loaded simple knowledge base from {len(files)} files",
            extra={"corpus_source": "simple", "context_length": len(knowledge)},
        )
        return CorpusSnapshot(text=knowledge, source="simple")

    async def load_processed(self) -> str:
        """
        Concatenate every processed markdown file.

        Files that fail to download are skipped.

        Raises:
            TransportError: If the processed folder cannot be listed
            EmptyCorpusError: If no processed text could be read
        """
        files = await self._list(self.processed_folder, PROCESSED_EXTENSIONS)

        knowledge = ""
        for remote in files:
            try:
                content = await self.document_store.fetch_content(remote.download_url)
            except DocumentStoreError as e:
                logger.warning(
                    f"Skipping file {remote.name}: {str(e)}",
                    extra={"document_name": remote.name},
                )
                continue
            knowledge += format_block(remote.name, content)

        if not knowledge:
            raise EmptyCorpusError(f"No processed documents in {self.processed_folder}")

        logger.info(
            f"Loaded processed knowledge base from {len(files)} files",
            extra={"corpus_source": "processed", "context_length": len(knowledge)},
        )
        return knowledge

    async def load(self) -> CorpusSnapshot:
        """Load the corpus for the configured mode, degrading tier by tier."""
        if self.mode != "rag":
            return await self.load_simple()

        try:
            return CorpusSnapshot(text=await self.load_processed(), source="processed")
        except EmptyCorpusError as e:
            logger.info(str(e))
            CORPUS_FALLBACKS.labels(tier="placeholder").inc()
            return CorpusSnapshot(text=KNOWLEDGE_PROCESSING, source="placeholder")
        except TransportError as e:
            logger.error(f"Failed to load processed knowledge base: {str(e)}")
            logger.info("Falling back to simple knowledge base")
            CORPUS_FALLBACKS.labels(tier="simple").inc()
            return await self.load_simple()
