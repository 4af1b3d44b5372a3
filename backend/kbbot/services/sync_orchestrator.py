"""Incremental synchronization of source documents against their processed form."""
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from kbbot.exceptions import ConflictError, DocumentStoreError
from kbbot.models.document import Document, DocumentStatus, RemoteFile
from kbbot.services.change_detector import detect_changes
from kbbot.services.document_store import GitHubDocumentStore
from kbbot.services.sync_state import SyncState
from kbbot.utils.logger import logger
from kbbot.utils.metrics import SYNC_DOCUMENTS, SYNC_RUNS


ALREADY_RUNNING = "already running"


def processed_name_for(name: str, processed_extension: str = ".md") -> str:
    """Name of the pre-chunked counterpart: same stem, new extension."""
    stem, _ = os.path.splitext(name)
    return f"{stem}{processed_extension}"


def count_chunk_sections(markdown: str) -> int:
    """Count ``## `` chunk headings in a processed markdown document."""
    return sum(1 for line in markdown.splitlines() if line.startswith("## "))


class SyncOrchestrator:
    """Runs synchronization passes; at most one at a time."""

    def __init__(
        self,
        document_store: GitHubDocumentStore,
        state: Optional[SyncState] = None,
        source_folder: str = "pdfs",
        processed_folder: str = "processed",
        source_extension: str = ".pdf",
        processed_extension: str = ".md",
    ):
        """
        Initialize sync orchestrator.

        Args:
            document_store: Client for listing and downloading files
            state: Shared sync state (fresh in-memory state when omitted)
            source_folder: Folder holding the raw source documents
            processed_folder: Folder holding pre-chunked markdown
            source_extension: Extension of source documents to track
            processed_extension: Extension of pre-chunked documents
        """
        self.document_store = document_store
        self.state = state or SyncState()
        self.source_folder = source_folder
        self.processed_folder = processed_folder
        self.source_extension = source_extension.lower()
        self.processed_extension = processed_extension

    async def list_source_files(self) -> List[RemoteFile]:
        """List source documents, keeping only files with the source extension."""
        entries = await self.document_store.list_documents(self.source_folder)
        return [
            entry
            for entry in entries
            if entry.type == "file" and entry.name.lower().endswith(self.source_extension)
        ]

    def try_begin(self) -> None:
        """
        Take the processing flag for a new pass.

        Raises:
            ConflictError: If a pass already holds the flag
        """
        # No await between the check and the flip, so this is atomic on the event loop
        if self.state.processing:
            raise ConflictError(ALREADY_RUNNING)
        self.state.begin_pass()

    async def run_sync(self) -> Dict[str, Any]:
        """
        Run one synchronization pass.

        Returns:
            ``{"error": "already running"}`` when a pass is in progress; otherwise
            success, processed, total, deleted, logs and per-document results.
            A listing failure returns success False with the error.
        """
        try:
            self.try_begin()
        except ConflictError as e:
            logger.warning("Sync requested while another pass is running")
            SYNC_RUNS.labels(outcome="conflict").inc()
            return {"error": str(e)}

        return await self.run_pass()

    async def run_pass(self) -> Dict[str, Any]:
        """Run the body of a pass whose flag was taken by ``try_begin``; always releases it."""
        state = self.state
        try:
            state.log("Detecting file changes...")
            remote_files = await self.list_source_files()
            known_documents = await state.store.get_all()
            changes = detect_changes(remote_files, known_documents)

            total = len(changes.to_process)
            state.total_files = total
            state.log(f"Found {len(changes.new)} new files")
            state.log(f"Found {len(changes.updated)} updated files")
            state.log(f"Found {len(changes.deleted)} deleted files")

            results = []
            for remote in changes.to_process:
                results.append(await self._process_document(remote))

            for name in changes.deleted:
                await state.store.delete(name)
                state.log(f"Removed: {name}")

            state.log("Sync complete")
            logger.info(
                "Sync pass finished",
                extra={
                    "sync_counts": {
                        "processed": state.processed_files,
                        "total": total,
                        "deleted": len(changes.deleted),
                    }
                },
            )
            SYNC_RUNS.labels(outcome="success").inc()

            return {
                "success": True,
                "processed": state.processed_files,
                "total": total,
                "deleted": len(changes.deleted),
                "logs": state.recent_logs(),
                "results": results,
            }

        except Exception as e:
            state.log(f"Sync failed: {str(e)}", level="error")
            SYNC_RUNS.labels(outcome="failure").inc()
            return {
                "success": False,
                "error": str(e),
                "logs": state.recent_logs(),
            }
        finally:
            state.end_pass()

    async def _process_document(self, remote: RemoteFile) -> Dict[str, Any]:
        """Adopt the pre-chunked form of one document or flag it for processing."""
        state = self.state
        state.current_file = remote.name
        state.log(f"Processing: {remote.name}")
        processed_name = processed_name_for(remote.name, self.processed_extension)
        fresh = Document(name=remote.name, fingerprint=remote.fingerprint, size_bytes=remote.size_bytes)

        try:
            processed = await self.document_store.get_file(f"{self.processed_folder}/{processed_name}")

            if processed is None:
                document = fresh.mark(DocumentStatus.NEEDS_PROCESSING)
                await state.store.put(document)
                state.processed_files += 1
                state.log(f"No processed file found, PDF needs processing: {remote.name}", level="warning")
                state.log(
                    f"Run the PDF processor locally and upload the output to {self.processed_folder}/"
                )
                SYNC_DOCUMENTS.labels(status=document.status.value).inc()
                return {"success": True, "file_name": remote.name, "note": "needs processing"}

            state.log(f"Found processed file: {processed_name}")
            document = fresh.mark(
                DocumentStatus.PROCESSED,
                processed_at=datetime.now(timezone.utc),
                chunk_count=await self._count_chunks(processed),
                processed_file=processed_name,
            )
            await state.store.put(document)
            state.processed_files += 1
            state.log(f"Finished: {remote.name}")
            SYNC_DOCUMENTS.labels(status=document.status.value).inc()
            return {"success": True, "file_name": remote.name, "note": "used processed file"}

        except Exception as e:
            state.processed_files += 1
            state.log(f"Processing failed {remote.name}: {str(e)}", level="error")
            SYNC_DOCUMENTS.labels(status="failed").inc()
            return {"success": False, "file_name": remote.name, "error": str(e)}

    async def _count_chunks(self, processed: RemoteFile) -> Optional[int]:
        try:
            content = await self.document_store.fetch_content(processed.download_url)
        except DocumentStoreError as e:
            logger.warning(
                f"Could not read {processed.name} to count chunks: {str(e)}",
                extra={"document_name": processed.name},
            )
            return None
        return count_chunk_sections(content)

    async def list_known_documents(self) -> List[Document]:
        documents = await self.state.store.get_all()
        return list(documents.values())

    async def list_files_with_status(self) -> List[Dict[str, Any]]:
        """Merge the remote listing with tracked state for the admin file list."""
        remote_files = await self.list_source_files()
        known_documents = await self.state.store.get_all()

        files = []
        for remote in remote_files:
            known = known_documents.get(remote.name)
            files.append(
                {
                    "name": remote.name,
                    "size": remote.size_bytes,
                    "status": known.status.value if known else DocumentStatus.UNPROCESSED.value,
                    "processed_at": known.processed_at if known else None,
                }
            )
        return files

    def get_sync_status(self, log_tail: Optional[int] = 20) -> Dict[str, Any]:
        state = self.state
        return {
            "processing": state.processing,
            "start_time": state.start_time,
            "current_file": state.current_file,
            "total_files": state.total_files,
            "processed_files": state.processed_files,
            "recent_logs": state.recent_logs(log_tail),
        }
