"""Offline PDF processor producing the pre-chunked markdown the sync pass adopts.

Usage:
    python -m kbbot.services.pdf_processor process [pdf_dir] [output_dir]

Each ``<name>.pdf`` becomes ``<name>.md`` in the output directory; upload
those files to the repository's processed folder.
"""
import argparse
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pdfplumber
from pydantic_settings import BaseSettings

from kbbot.exceptions import ExtractionError
from kbbot.models.document import Chunk
from kbbot.services.chunker import Chunker
from kbbot.utils.logger import logger
from kbbot.utils.text_cleaner import clean_text


UNKNOWN = "未知"
REPORT_NAME = "processing-report.json"


class ProcessorSettings(BaseSettings):
    """Chunking defaults for the offline processor."""

    chunk_size: int = 1000
    chunk_overlap: int = 200

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def extract_pdf_text(pdf_path: Path) -> Dict[str, Any]:
    """
    Extract text from a PDF using pdfplumber.

    Args:
        pdf_path: Path to PDF file

    Returns:
        Dictionary with text, pages and info (document metadata)

    Raises:
        ExtractionError: If the PDF cannot be read
    """
    try:
        with pdfplumber.open(pdf_path) as pdf:
            page_texts = [page.extract_text() or "" for page in pdf.pages]
            return {
                "text": clean_text("\n".join(page_texts)),
                "pages": len(pdf.pages),
                "info": dict(pdf.metadata or {}),
            }
    except Exception as e:
        logger.error(f"Error processing PDF {pdf_path}: {str(e)}")
        raise ExtractionError(f"Failed to process PDF file: {str(e)}") from e


def render_markdown(title: str, chunks: List[Chunk], pages: int, info: Dict[str, Any]) -> str:
    """Render chunks as the processed markdown layout, one ``##`` section per chunk."""
    markdown = f"# {title}\n\n"
    markdown += "**文件信息:**\n"
    markdown += f"- 页数: {pages}\n"
    markdown += f"- 创建时间: {info.get('CreationDate') or UNKNOWN}\n"
    markdown += f"- 修改时间: {info.get('ModDate') or UNKNOWN}\n\n"
    markdown += "---\n\n"

    for chunk in chunks:
        markdown += f"## 内容块 {chunk.sequence_index + 1}\n\n{chunk.text}\n\n---\n\n"

    return markdown


def process_pdf_file(pdf_path: Path, output_dir: Path, chunker: Chunker) -> Optional[Dict[str, Any]]:
    """
    Convert one PDF into processed markdown.

    Returns:
        Summary dictionary, or None when extraction failed
    """
    logger.info(f"Processing {pdf_path}")

    try:
        extracted = extract_pdf_text(pdf_path)
    except ExtractionError:
        return None

    text = extracted["text"]
    chunks = chunker.chunk_document(pdf_path.name, text)

    file_name = pdf_path.stem
    output_path = output_dir / f"{file_name}.md"
    output_path.write_text(
        render_markdown(file_name, chunks, extracted["pages"], extracted["info"]),
        encoding="utf-8",
    )
    logger.info(f"Saved {output_path} ({len(chunks)} chunks)")

    return {
        "fileName": file_name,
        "outputPath": str(output_path),
        "chunks": len(chunks),
        "totalChars": len(text),
    }


def process_all_pdfs(
    pdf_dir: Path = Path("./pdfs"),
    output_dir: Path = Path("./processed"),
    chunker: Optional[Chunker] = None,
) -> Dict[str, Any]:
    """
    Convert every PDF in a directory and write a processing report.

    Returns:
        The report written to ``processing-report.json``
    """
    chunker = chunker or Chunker()
    pdf_dir = Path(pdf_dir)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    pdf_files = sorted(p for p in pdf_dir.iterdir() if p.suffix.lower() == ".pdf")
    logger.info(f"Found {len(pdf_files)} PDF files")

    results = []
    for pdf_path in pdf_files:
        result = process_pdf_file(pdf_path, output_dir, chunker)
        if result:
            results.append(result)

    report = {
        "processedAt": datetime.now(timezone.utc).isoformat(),
        "totalFiles": len(results),
        "totalChunks": sum(r["chunks"] for r in results),
        "totalChars": sum(r["totalChars"] for r in results),
        "files": results,
    }
    (output_dir / REPORT_NAME).write_text(
        json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8"
    )
    logger.info(
        f"Processed {report['totalFiles']} files into {report['totalChunks']} chunks "
        f"({report['totalChars']} characters)"
    )
    return report


def main(argv: Optional[List[str]] = None) -> int:
    settings = ProcessorSettings()
    parser = argparse.ArgumentParser(
        description="Convert PDFs into pre-chunked markdown for the knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m kbbot.services.pdf_processor process
  python -m kbbot.services.pdf_processor process ./pdfs ./processed
        """,
    )
    subparsers = parser.add_subparsers(dest="command")
    process = subparsers.add_parser("process", help="Process every PDF in a directory")
    process.add_argument("pdf_dir", nargs="?", default="./pdfs")
    process.add_argument("output_dir", nargs="?", default="./processed")
    process.add_argument("--chunk-size", type=int, default=settings.chunk_size)
    process.add_argument("--overlap", type=int, default=settings.chunk_overlap)

    args = parser.parse_args(argv)
    if args.command != "process":
        parser.print_help()
        return 1

    process_all_pdfs(
        Path(args.pdf_dir),
        Path(args.output_dir),
        Chunker(chunk_size=args.chunk_size, overlap=args.overlap),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
