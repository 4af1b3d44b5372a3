"""Pydantic schemas for API requests and responses."""
import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class AskRequest(BaseModel):
    """Request schema for asking questions."""

    question: str = Field(..., min_length=1, description="User's question")

    @field_validator("question")
    @classmethod
    def clean_question(cls, v: str) -> str:
        """
        Clean question by removing invalid control characters.

        Args:
            v: Raw question string

        Returns:
            Cleaned question string
        """
        # Keep \n, \t and \r; drop the other control characters
        cleaned = re.sub(r'[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]', '', v).strip()

        if not cleaned:
            raise ValueError("Question cannot be empty after cleaning")

        return cleaned


class AskResponse(BaseModel):
    """Response schema for question answering."""

    answer: str = Field(..., description="LLM-generated answer or fallback reply")
    context_length: int = Field(..., description="Characters of context sent to the model")
    corpus_source: Optional[str] = Field(None, description="processed, simple or placeholder")
    truncated: bool = Field(False, description="Whether the token budget forced truncation")
    response_time_ms: Optional[float] = Field(None, description="Response time in milliseconds")


class DocumentInfo(BaseModel):
    """A tracked source document."""

    name: str
    fingerprint: str
    size_bytes: int
    status: str
    processed_at: Optional[datetime] = None
    chunk_count: Optional[int] = None
    processed_file: Optional[str] = None


class DocumentsResponse(BaseModel):
    """Response schema for the tracked document list."""

    documents: List[DocumentInfo]


class FileStatus(BaseModel):
    """A remote source file merged with its tracked status."""

    name: str
    size: int
    status: str
    processed_at: Optional[datetime] = None


class FilesResponse(BaseModel):
    """Response schema for the admin file list."""

    files: List[FileStatus]


class SyncStatusResponse(BaseModel):
    """Response schema for the sync status endpoint."""

    processing: bool
    start_time: Optional[datetime] = None
    current_file: Optional[str] = None
    total_files: int
    processed_files: int
    recent_logs: List[str]


class SyncStartedResponse(BaseModel):
    """Response schema for a background sync trigger."""

    message: str = Field(default="Sync started, check the status endpoint for progress")
    is_processing: bool = True
