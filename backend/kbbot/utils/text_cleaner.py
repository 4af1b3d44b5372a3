"""Text cleaning and normalization utilities."""
import re


def clean_text(text: str) -> str:
    """
    Clean and normalize extracted text.

    Args:
        text: Raw text to clean

    Returns:
        Cleaned text with normalized whitespace, line breaks kept
    """
    # Normalize line breaks
    text = re.sub(r"\r\n", "\n", text)
    text = re.sub(r"\r", "\n", text)

    # Remove special control characters but keep newlines and tabs
    text = re.sub(r"[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]", "", text)

    # Collapse runs of spaces and tabs
    text = re.sub(r"[ \t]+", " ", text)

    # Remove excessive newlines (more than 2 consecutive)
    text = re.sub(r"\n\s*\n(\s*\n)+", "\n\n", text)

    return text.strip()
