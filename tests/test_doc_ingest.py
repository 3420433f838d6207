from datetime import datetime, timezone
from unittest.mock import Mock, patch

import dataclasses

import pytest

from ragbot import doc_ingest
from ragbot.config import load_settings, settings
from ragbot.doc_ingest import build_partitions, ingest_source_to_partitions


STAMP = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)

SAMPLE_MD = """# Retrieval Augmented Generation

RAG retrieves relevant content before generation.

Embeddings map text to vectors and a vector index finds neighbours.
"""


@pytest.fixture(autouse=True)
def fake_tokenizer(whitespace_encoder):
    with patch("ragbot.doc_ingest.get_tokenizer", return_value=whitespace_encoder):
        yield


@pytest.mark.unit
class TestBuildPartitions:

    def test_small_document_is_one_partition(self):
        parts = build_partitions(SAMPLE_MD, "doc001", "guide.pdf", "file:///guide.pdf",
                                 chunk_tokens=100, overlap_tokens=0, last_update=STAMP)

        assert len(parts) == 1
        assert parts[0]["id"] == "doc001::p0"
        assert parts[0]["document_id"] == "doc001"
        assert parts[0]["partition_number"] == 0
        assert parts[0]["last_update"] == STAMP.isoformat()
        assert parts[0]["text"].startswith("# Retrieval Augmented Generation")

    def test_blocks_are_packed_within_budget(self):
        parts = build_partitions(SAMPLE_MD, "doc001", "guide.pdf", "file:///guide.pdf",
                                 chunk_tokens=11, overlap_tokens=0, last_update=STAMP)

        assert [p["partition_number"] for p in parts] == [0, 1]
        assert parts[0]["text"] == (
            "# Retrieval Augmented Generation\n\nRAG retrieves relevant content before generation."
        )
        assert parts[1]["text"].startswith("Embeddings map text")

    def test_oversized_block_is_windowed(self):
        text = " ".join(f"w{i}" for i in range(10))

        parts = build_partitions(text, "doc001", "a", "b", chunk_tokens=4, overlap_tokens=1, last_update=STAMP)

        assert [p["text"] for p in parts] == ["w0 w1 w2 w3", "w3 w4 w5 w6", "w6 w7 w8 w9"]

    def test_empty_markdown_has_no_partitions(self):
        assert build_partitions("  \n\n ", "doc001", "a", "b", last_update=STAMP) == []

    def test_hyphenated_line_breaks_are_joined(self):
        parts = build_partitions("retrie-\nval works", "doc001", "a", "b", chunk_tokens=50, last_update=STAMP)

        assert parts[0]["text"] == "retrieval works"

    def test_budget_comes_from_settings(self):
        cfg = dataclasses.replace(load_settings(), chunk_size_tokens=3, chunk_overlap_tokens=1)
        text = " ".join(f"w{i}" for i in range(5))

        parts = build_partitions(text, "doc001", "a", "b", last_update=STAMP, cfg=cfg)

        assert [p["text"] for p in parts] == ["w0 w1 w2", "w2 w3 w4"]


@pytest.mark.unit
class TestIngestSource:

    @patch("ragbot.doc_ingest.convert_to_markdown")
    def test_file_source(self, mock_convert, tmp_path):
        pdf = tmp_path / "guide.pdf"
        pdf.write_bytes(b"%PDF-1.4")
        mock_convert.return_value = SAMPLE_MD

        parts = ingest_source_to_partitions(str(pdf), "doc001")

        assert parts[0]["source_name"] == "guide.pdf"
        assert parts[0]["link"] == pdf.resolve().as_uri()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ingest_source_to_partitions(str(tmp_path / "missing.pdf"), "doc001")

    @patch("ragbot.doc_ingest.convert_to_markdown")
    def test_web_source_uses_first_heading(self, mock_convert):
        mock_convert.return_value = SAMPLE_MD

        parts = ingest_source_to_partitions("https://example.com/rag", "doc002")

        mock_convert.assert_called_once_with("https://example.com/rag", settings)
        assert parts[0]["source_name"] == "Retrieval Augmented Generation"
        assert parts[0]["link"] == "https://example.com/rag"

    @patch("ragbot.doc_ingest.convert_to_markdown")
    def test_web_source_without_heading_uses_url(self, mock_convert):
        mock_convert.return_value = "plain text only"

        parts = ingest_source_to_partitions("https://example.com/plain", "doc002")

        assert parts[0]["source_name"] == "https://example.com/plain"


@pytest.mark.unit
class TestConvertToMarkdown:

    @patch("ragbot.doc_ingest._read_with_docling_cli")
    @patch("ragbot.doc_ingest._read_with_docling_api")
    def test_api_result_is_exported(self, mock_api, mock_cli):
        mock_api.return_value = Mock(document=Mock(export_to_markdown=Mock(return_value="# Title")))

        assert doc_ingest.convert_to_markdown("guide.pdf") == "# Title"
        mock_cli.assert_not_called()

    @patch("ragbot.doc_ingest._read_with_docling_cli")
    @patch("ragbot.doc_ingest._read_with_docling_api")
    def test_falls_back_to_cli(self, mock_api, mock_cli):
        mock_api.side_effect = RuntimeError("model download failed")
        mock_cli.return_value = "# From CLI"

        assert doc_ingest.convert_to_markdown("guide.pdf") == "# From CLI"
        mock_cli.assert_called_once_with("guide.pdf")

    @patch("ragbot.doc_ingest._read_with_docling_cli")
    @patch("ragbot.doc_ingest._read_with_docling_api")
    def test_api_can_be_disabled(self, mock_api, mock_cli):
        cfg = dataclasses.replace(load_settings(), prefer_docling_api=False)
        mock_cli.return_value = "# From CLI"

        assert doc_ingest.convert_to_markdown("guide.pdf", cfg) == "# From CLI"
        mock_api.assert_not_called()
