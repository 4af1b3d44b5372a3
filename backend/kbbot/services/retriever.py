"""Keyword retrieval over the assembled corpus text."""
from typing import List

from kbbot.utils.logger import logger


# Separator placed in front of every document header ("\n--- name ---\n")
BLOCK_DELIMITER = "\n--- "
ELLIPSIS = "..."


def extract_keywords(query: str) -> List[str]:
    """Whitespace tokens of the query longer than one character."""
    return [token for token in query.split() if len(token) > 1]


def split_corpus_blocks(corpus: str) -> List[str]:
    """Split the corpus on document headers, dropping blank blocks."""
    return [block for block in corpus.split(BLOCK_DELIMITER) if block.strip()]


def is_relevant(block: str, keywords: List[str]) -> bool:
    block_lower = block.lower()
    return any(keyword.lower() in block_lower for keyword in keywords)


def retrieve(query: str, corpus: str, max_chars: int = 8000, max_blocks: int = 3) -> str:
    """
    Select the corpus blocks that mention any query keyword.

    Matching is a case-insensitive substring test. The first ``max_blocks``
    matches in corpus order are joined by a blank line and cut to
    ``max_chars`` characters plus an ellipsis. When nothing matches the
    first ``max_chars`` characters of the whole corpus are returned instead.

    Args:
        query: User question
        corpus: Corpus text made of ``--- name ---`` blocks
        max_chars: Character budget for the result
        max_blocks: Maximum number of matching blocks kept

    Returns:
        Context text; empty only when the corpus is empty
    """
    keywords = extract_keywords(query)
    relevant = [block for block in split_corpus_blocks(corpus) if is_relevant(block, keywords)]

    selected = "\n\n".join(relevant[:max_blocks])
    if len(selected) > max_chars:
        selected = selected[:max_chars] + ELLIPSIS

    if not selected:
        logger.info(
            "No keyword match, using corpus prefix",
            extra={"context_length": min(len(corpus), max_chars)},
        )
        return corpus[:max_chars]

    logger.info(
        f"Keyword retrieval selected {min(len(relevant), max_blocks)} of {len(relevant)} matching blocks",
        extra={"context_length": len(selected)},
    )
    return selected
