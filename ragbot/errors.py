from __future__ import annotations

from typing import Iterable, List


class RagBotError(Exception):
	"""Base class for errors the CLI knows how to report."""


class ConfigurationError(RagBotError):
	pass


class IngestionError(RagBotError):
	def __init__(self, document_ids: Iterable[str], origin: str | None = None, reason: str | None = None):
		self.document_ids: List[str] = list(document_ids)
		self.origin = origin
		self.reason = reason
		message = f"Failed to import document(s): {', '.join(self.document_ids)}"
		if origin:
			message += f" from {origin}"
		if reason:
			message += f" ({reason})"
		super().__init__(message)


class ReadinessTimeout(RagBotError):
	def __init__(self, document_ids: Iterable[str], waited: float):
		self.document_ids: List[str] = list(document_ids)
		self.waited = waited
		super().__init__(
			f"Documents not ready after {waited:.1f}s: {', '.join(self.document_ids)}"
		)


class GenerationError(RagBotError):
	"""The chat-completions endpoint failed or returned an unusable payload."""
