import os
import sys
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

# Add the project root to path for imports
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from ragbot.models import DocumentStatus, MemoryAnswer, Partition, RelevantSource


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


class WhitespaceEncoder:
    """Stand-in for a tiktoken encoding: one token per whitespace-separated word."""

    def encode(self, text):
        return text.split()

    def decode(self, tokens):
        return " ".join(tokens)


@pytest.fixture
def whitespace_encoder():
    return WhitespaceEncoder()


@pytest.fixture
def sample_answer():
    """Answer citing the PDF (with a partition) and the web page (without)"""
    return MemoryAnswer(
        question="What is RAG?",
        result="RAG retrieves relevant content and gives it to the model.",
        relevant_sources=[
            RelevantSource(
                document_id="doc001",
                source_name="A_Simple_Guide_to_Retrieval_Augmented_Ge_v4_MEAP.pdf",
                link="file:///data/guide.pdf",
                partitions=[
                    Partition(
                        text="Retrieval augmented generation ...",
                        partition_number=0,
                        last_update=datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc),
                    )
                ],
            ),
            RelevantSource(
                document_id="doc002",
                source_name="RAG fundamentals",
                link="https://example.com/rag",
                partitions=[],
            ),
        ],
    )


@pytest.fixture
def mock_memory(sample_answer):
    """Memory client whose documents are ready and whose ask() succeeds"""
    memory = Mock()
    memory.is_document_ready.return_value = True
    memory.document_status.return_value = DocumentStatus.READY
    memory.document_error.return_value = None
    memory.ask.return_value = sample_answer
    return memory
