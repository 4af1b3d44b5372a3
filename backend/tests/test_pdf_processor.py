"""Tests for the offline PDF processor."""
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from kbbot.exceptions import ExtractionError
from kbbot.models.document import Chunk
from kbbot.services.chunker import Chunker
from kbbot.services.pdf_processor import (
    extract_pdf_text,
    main,
    process_all_pdfs,
    render_markdown,
)
from kbbot.services.sync_orchestrator import count_chunk_sections


def fake_extract(pdf_path):
    if Path(pdf_path).stem == "broken":
        raise ExtractionError("Failed to process PDF file: bad xref")
    return {
        "text": "第一句话。第二句话。Third sentence here.",
        "pages": 3,
        "info": {"CreationDate": "D:20240101"},
    }


class TestRenderMarkdown:
    """Tests for the processed markdown layout."""

    def test_layout(self):
        chunks = [Chunk("manual.pdf", 0, "first chunk"), Chunk("manual.pdf", 1, "second chunk")]
        markdown = render_markdown("manual", chunks, 2, {"CreationDate": "D:2024"})

        assert markdown.startswith("# manual\n\n**文件信息:**\n- 页数: 2\n")
        assert "- 创建时间: D:2024\n" in markdown
        assert "- 修改时间: 未知\n" in markdown
        assert "## 内容块 1\n\nfirst chunk\n\n---" in markdown
        assert "## 内容块 2\n\nsecond chunk\n\n---" in markdown

    def test_section_count_matches_sync_count(self):
        text = "One two. Three four. Five six. Seven eight. Nine ten."
        chunks = Chunker(chunk_size=10, overlap=0).chunk_document("t.pdf", text)
        assert count_chunk_sections(render_markdown("t", chunks, 1, {})) == len(chunks) == 5


class TestProcessAllPdfs:
    """Tests for batch processing."""

    def test_writes_markdown_and_report(self, temp_dir):
        pdf_dir = Path(temp_dir) / "pdfs"
        output_dir = Path(temp_dir) / "processed"
        pdf_dir.mkdir()
        (pdf_dir / "guide.pdf").write_bytes(b"%PDF-1.4")
        (pdf_dir / "broken.pdf").write_bytes(b"junk")
        (pdf_dir / "notes.txt").write_text("ignored")

        with patch("kbbot.services.pdf_processor.extract_pdf_text", side_effect=fake_extract):
            report = process_all_pdfs(pdf_dir, output_dir, Chunker(chunk_size=1000, overlap=200))

        assert report["totalFiles"] == 1
        assert report["files"][0]["fileName"] == "guide"
        assert report["totalChunks"] == 1

        markdown = (output_dir / "guide.md").read_text(encoding="utf-8")
        assert "- 页数: 3" in markdown
        assert "第一句话。第二句话。Third sentence here。" in markdown
        assert not (output_dir / "broken.md").exists()

        written = json.loads((output_dir / "processing-report.json").read_text(encoding="utf-8"))
        assert written["totalFiles"] == 1
        assert written["files"][0]["outputPath"].endswith("guide.md")

    def test_unreadable_pdf_raises_extraction_error(self, temp_dir):
        path = Path(temp_dir) / "not-a.pdf"
        path.write_bytes(b"not a pdf")

        with pytest.raises(ExtractionError):
            extract_pdf_text(path)


class TestCli:
    """Tests for the command line entry point."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "process" in capsys.readouterr().out

    def test_process_command(self, temp_dir):
        pdf_dir = Path(temp_dir) / "in"
        pdf_dir.mkdir()
        (pdf_dir / "a.pdf").write_bytes(b"%PDF-1.4")

        with patch("kbbot.services.pdf_processor.extract_pdf_text", side_effect=fake_extract):
            code = main(["process", str(pdf_dir), str(Path(temp_dir) / "out"), "--chunk-size", "10", "--overlap", "0"])

        assert code == 0
        markdown = (Path(temp_dir) / "out" / "a.md").read_text(encoding="utf-8")
        assert count_chunk_sections(markdown) == 2
        assert "## 内容块 1\n\n第一句话。第二句话。\n" in markdown
        assert "## 内容块 2\n\nThird sentence here。\n" in markdown
