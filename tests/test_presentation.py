from datetime import datetime

import pytest

from ragbot.models import MemoryAnswer, RelevantSource
from ragbot.presentation import (
    FAILURE_MESSAGE,
    NO_SOURCES_MESSAGE,
    UNKNOWN_TIMESTAMP,
    format_timestamp,
    render_answer,
    render_failure,
)


@pytest.mark.unit
class TestPresentation:
    """Formatting of answers and their sources"""

    def test_format_timestamp_long_date(self):
        assert format_timestamp(datetime(2026, 10, 18)) == "Sunday, 18 October 2026"

    def test_format_timestamp_missing(self):
        assert format_timestamp(None) == UNKNOWN_TIMESTAMP

    def test_render_answer_with_sources(self, sample_answer):
        text = render_answer(sample_answer)
        lines = text.splitlines()

        assert lines[0] == "Question: What is RAG?"
        assert lines[2] == "Answer: RAG retrieves relevant content and gives it to the model."
        assert lines[3] == "Source(s): "
        assert lines[4] == (
            " - A_Simple_Guide_to_Retrieval_Augmented_Ge_v4_MEAP.pdf - file:///data/guide.pdf"
            "[Sunday, 18 October 2026]"
        )
        assert lines[5] == " - RAG fundamentals - https://example.com/rag[unknown]"
        assert NO_SOURCES_MESSAGE not in text

    def test_render_answer_without_sources(self):
        answer = MemoryAnswer(question="Anything?", result="INFO NOT FOUND")

        text = render_answer(answer)

        assert text.endswith(NO_SOURCES_MESSAGE)
        assert "Source(s)" not in text

    def test_source_without_partitions_uses_sentinel(self):
        answer = MemoryAnswer(
            question="What is RAG?",
            result="An answer",
            relevant_sources=[RelevantSource("doc002", "page", "https://example.com")],
        )

        assert "[unknown]" in render_answer(answer)

    def test_render_failure(self):
        assert render_failure() == FAILURE_MESSAGE
