from __future__ import annotations

from datetime import datetime
from typing import List

from .models import MemoryAnswer, RelevantSource

UNKNOWN_TIMESTAMP = "unknown"
NO_SOURCES_MESSAGE = "No sources available for this answer."
FAILURE_MESSAGE = "Sorry, an error occurred while processing your request."
INVALID_INPUT_MESSAGE = "Please enter a valid question."
GREETING = "Hi, the documents are ready. You can start asking questions! (type 'exit' to quit)"


def format_timestamp(value: datetime | None) -> str:
	# Long date, e.g. "Monday, 18 October 2026"
	if value is None:
		return UNKNOWN_TIMESTAMP
	return f"{value:%A}, {value.day} {value:%B %Y}"


def format_source(source: RelevantSource) -> str:
	return f" - {source.source_name} - {source.link}[{format_timestamp(source.last_update)}]"


def render_sources(sources: List[RelevantSource]) -> str:
	if not sources:
		return NO_SOURCES_MESSAGE
	return "\n".join(["Source(s): "] + [format_source(s) for s in sources])


def render_answer(answer: MemoryAnswer) -> str:
	return f"Question: {answer.question}\n\nAnswer: {answer.result}\n{render_sources(answer.relevant_sources)}"


def render_failure() -> str:
	return FAILURE_MESSAGE
