"""Custom exception classes for corpus synchronization and answering."""


class KnowledgeBotError(Exception):
    """Base exception for knowledge-base bot errors."""
    pass


class TransportError(KnowledgeBotError):
    """Raised when an external service is unreachable or answers non-2xx."""
    pass


class DocumentStoreError(TransportError):
    """Raised when the document store cannot list or download files."""
    pass


class CompletionError(TransportError):
    """Raised when the completion model call fails."""
    pass


class ConflictError(KnowledgeBotError):
    """Raised when a synchronization pass is already running."""
    pass


class EmptyCorpusError(KnowledgeBotError):
    """Raised when a corpus source yields no usable text."""
    pass


class DocumentProcessingError(KnowledgeBotError):
    """Base exception for offline document processing errors."""
    pass


class ExtractionError(DocumentProcessingError):
    """Raised when text extraction from a document fails."""
    pass
