"""Synchronization state: tracked documents, the processing flag and the pass log."""
import json
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Protocol

import redis.asyncio as redis

from kbbot.models.document import Document
from kbbot.utils.logger import logger


class DocumentStateStore(Protocol):
    """Keyed storage for tracked documents."""

    async def get_all(self) -> Dict[str, Document]:
        ...

    async def put(self, document: Document) -> None:
        ...

    async def delete(self, name: str) -> None:
        ...

    async def close(self) -> None:
        ...


class InMemoryDocumentStore:
    """Process-resident document store; emptied by a restart."""

    def __init__(self):
        self._documents: Dict[str, Document] = {}

    async def get_all(self) -> Dict[str, Document]:
        return dict(self._documents)

    async def put(self, document: Document) -> None:
        self._documents[document.name] = document

    async def delete(self, name: str) -> None:
        self._documents.pop(name, None)

    async def close(self) -> None:
        pass


class RedisDocumentStore:
    """Redis-backed document store that survives restarts."""

    def __init__(self, redis_url: str = "redis://localhost:6379/0", key: str = "kbbot:documents"):
        """
        Initialize Redis document store.

        Args:
            redis_url: Redis connection URL
            key: Hash key holding one JSON document per field
        """
        self.redis_url = redis_url
        self.key = key
        self.redis_client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        logger.info(f"Redis document store initialized: {redis_url}")

    async def get_all(self) -> Dict[str, Document]:
        raw = await self.redis_client.hgetall(self.key)
        return {name: Document.from_dict(json.loads(value)) for name, value in raw.items()}

    async def put(self, document: Document) -> None:
        await self.redis_client.hset(
            self.key, document.name, json.dumps(document.to_dict(), ensure_ascii=False)
        )

    async def delete(self, name: str) -> None:
        await self.redis_client.hdel(self.key, name)

    async def close(self) -> None:
        await self.redis_client.close()
        logger.info("Redis document store connection closed")


class SyncState:
    """Mutable state shared by the orchestrator and the admin surface."""

    def __init__(self, store: Optional[DocumentStateStore] = None, log_limit: int = 200):
        """
        Initialize sync state.

        Args:
            store: Document store (in-memory when omitted)
            log_limit: Maximum number of pass log entries kept
        """
        self.store = store or InMemoryDocumentStore()
        self.processing = False
        self.start_time: Optional[datetime] = None
        self.current_file: Optional[str] = None
        self.total_files = 0
        self.processed_files = 0
        self.logs: Deque[str] = deque(maxlen=log_limit)

    def begin_pass(self) -> None:
        self.processing = True
        self.start_time = datetime.now(timezone.utc)
        self.current_file = None
        self.total_files = 0
        self.processed_files = 0
        self.logs.clear()

    def end_pass(self) -> None:
        self.processing = False
        self.current_file = None

    def log(self, message: str, level: str = "info") -> None:
        """Append to the pass log and mirror it to the process logger."""
        self.logs.append(message)
        getattr(logger, level)(message)

    def recent_logs(self, limit: Optional[int] = None) -> List[str]:
        entries = list(self.logs)
        if limit is None:
            return entries
        return entries[-limit:] if limit > 0 else []
