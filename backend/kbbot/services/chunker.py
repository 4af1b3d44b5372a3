"""Sentence-delimited text chunking with approximate word overlap."""
import re
from typing import Callable, List, Optional

from kbbot.models.document import Chunk
from kbbot.utils.logger import logger


# Chinese and Latin sentence terminators; runs of them count as one boundary
SENTENCE_TERMINATORS = re.compile(r"[。！？.!?]+")

# Characters-per-word guess used to turn a character overlap into a word count
CHARS_PER_WORD = 6

OverlapPolicy = Callable[[str, int], str]


def split_sentences(text: str) -> List[str]:
    """Split text on sentence terminators, dropping blank fragments."""
    if not text:
        return []
    return [s for s in SENTENCE_TERMINATORS.split(text) if s.strip()]


def word_tail_overlap(buffer: str, overlap: int) -> str:
    """
    Carry the tail of a closed buffer into the next chunk.

    Keeps the last ``overlap // 6`` whitespace-delimited words, so the overlap
    is only roughly ``overlap`` characters long.

    Args:
        buffer: Text of the chunk that was just closed
        overlap: Overlap hint in characters

    Returns:
        Overlap text (may be empty)
    """
    word_count = overlap // CHARS_PER_WORD
    if word_count <= 0:
        return ""
    words = buffer.split()
    return " ".join(words[-word_count:])


def split_text_into_chunks(
    text: str,
    chunk_size: int = 1000,
    overlap: int = 200,
    overlap_policy: OverlapPolicy = word_tail_overlap,
    terminator: str = "。",
) -> List[str]:
    """
    Split text into sentence-aligned chunks.

    Sentences are accumulated until the next one would push the buffer past
    ``chunk_size``. The buffer is then emitted and the next one is seeded with
    an overlap taken from its tail. A single sentence longer than
    ``chunk_size`` is never split and becomes an oversized chunk.

    Args:
        text: Raw document text
        chunk_size: Soft upper bound on chunk length in characters
        overlap: Overlap hint handed to ``overlap_policy``
        overlap_policy: Function computing the carried-over text
        terminator: Sentence terminator re-appended after each sentence

    Returns:
        Ordered list of trimmed, non-empty chunk texts
    """
    chunks: List[str] = []
    current = ""

    for sentence in split_sentences(text):
        if len(current) + len(sentence) > chunk_size:
            if current.strip():
                chunks.append(current.strip())

            tail = overlap_policy(current, overlap)
            current = f"{tail} {sentence.lstrip()}" if tail else sentence
            current += terminator
        else:
            current += sentence + terminator

    if current.strip():
        chunks.append(current.strip())

    return chunks


class Chunker:
    """Splits document text into ``Chunk`` objects."""

    def __init__(
        self,
        chunk_size: int = 1000,
        overlap: int = 200,
        overlap_policy: Optional[OverlapPolicy] = None,
    ):
        """
        Initialize chunker.

        Args:
            chunk_size: Soft upper bound on chunk length in characters
            overlap: Overlap hint in characters
            overlap_policy: Optional replacement for the word-tail overlap
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must not be negative")

        self.chunk_size = chunk_size
        self.overlap = overlap
        self.overlap_policy = overlap_policy or word_tail_overlap

    def split(self, text: str) -> List[str]:
        return split_text_into_chunks(
            text,
            chunk_size=self.chunk_size,
            overlap=self.overlap,
            overlap_policy=self.overlap_policy,
        )

    def chunk_document(self, document_name: str, text: str) -> List[Chunk]:
        """Split text and wrap each piece with its document name and index."""
        chunks = [
            Chunk(source_document=document_name, sequence_index=index, text=piece)
            for index, piece in enumerate(self.split(text))
        ]
        logger.info(
            f"Created {len(chunks)} chunks from {document_name}",
            extra={"document_name": document_name},
        )
        return chunks
