from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class DocumentStatus(str, Enum):
	PENDING = "pending"
	READY = "ready"
	FAILED = "failed"


@dataclass
class SourceDocument:
	document_id: str
	origin: str
	kind: str  # "file" | "web"
	status: DocumentStatus = DocumentStatus.PENDING
	error: str | None = None


@dataclass
class Partition:
	text: str
	partition_number: int
	last_update: datetime


@dataclass
class RelevantSource:
	document_id: str
	source_name: str
	link: str
	partitions: List[Partition] = field(default_factory=list)

	@property
	def last_update(self) -> Optional[datetime]:
		return self.partitions[0].last_update if self.partitions else None


@dataclass
class MemoryAnswer:
	question: str
	result: str
	relevant_sources: List[RelevantSource] = field(default_factory=list)


@dataclass(frozen=True)
class QueryOutcome:
	"""Result of one accepted question: exactly one of answer / error is set."""

	question: str
	answer: MemoryAnswer | None = None
	error: BaseException | None = None

	def __post_init__(self) -> None:
		if (self.answer is None) == (self.error is None):
			raise ValueError("QueryOutcome needs exactly one of answer or error")

	@property
	def ok(self) -> bool:
		return self.answer is not None
