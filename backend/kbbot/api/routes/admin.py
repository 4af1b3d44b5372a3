"""Admin endpoints: tracked files, sync trigger and sync status."""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from kbbot.api.schemas import (
    DocumentInfo,
    DocumentsResponse,
    FilesResponse,
    SyncStartedResponse,
    SyncStatusResponse,
)
from kbbot.exceptions import ConflictError, TransportError
from kbbot.services.sync_orchestrator import ALREADY_RUNNING, SyncOrchestrator
from kbbot.utils.logger import logger
from kbbot.utils.metrics import SYNC_RUNS

router = APIRouter()


def get_sync_orchestrator() -> SyncOrchestrator:
    """Get sync orchestrator from main app."""
    from kbbot.main import sync_orchestrator
    if sync_orchestrator is None:
        raise HTTPException(status_code=503, detail="Sync orchestrator not initialized")
    return sync_orchestrator


def get_status_log_tail() -> int:
    from kbbot.main import settings
    return settings.status_log_tail if settings else 20


def _conflict() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": ALREADY_RUNNING})


@router.get("/files", response_model=FilesResponse)
async def list_files(orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator)):
    """List remote source files with their tracked status."""
    try:
        files = await orchestrator.list_files_with_status()
    except TransportError as e:
        logger.error(f"Failed to list source files: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    return FilesResponse(files=files)


@router.get("/documents", response_model=DocumentsResponse)
async def list_documents(orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator)):
    """List documents tracked by previous sync passes."""
    documents = await orchestrator.list_known_documents()
    return DocumentsResponse(documents=[DocumentInfo(**d.to_dict()) for d in documents])


@router.post("/process")
async def trigger_sync(
    background_tasks: BackgroundTasks,
    wait: bool = False,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """
    Start a sync pass.

    By default the pass runs in the background and this returns at once.
    With ``wait=true`` the pass result is returned. A pass already in
    progress is rejected with 409.
    """
    if wait:
        result = await orchestrator.run_sync()
        if result.get("error") == ALREADY_RUNNING:
            return _conflict()
        return result

    # The flag is taken here so a second trigger is rejected before the task starts
    try:
        orchestrator.try_begin()
    except ConflictError:
        logger.warning("Sync requested while another pass is running")
        SYNC_RUNS.labels(outcome="conflict").inc()
        return _conflict()

    background_tasks.add_task(orchestrator.run_pass)
    return SyncStartedResponse()


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
    log_tail: int = Depends(get_status_log_tail),
):
    """Current sync flag, counters and the most recent log entries."""
    return SyncStatusResponse(**orchestrator.get_sync_status(log_tail))
