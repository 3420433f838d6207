from __future__ import annotations

from typing import List, Tuple
from urllib.parse import urlsplit

import tiktoken


def get_tokenizer(model: str = "gpt-4o-mini"):
	# tiktoken needs a model name to infer encoding; fall back to a common one
	try:
		return tiktoken.encoding_for_model(model)
	except KeyError:
		return tiktoken.get_encoding("cl100k_base")


def sliding_token_windows(
	text: str,
	max_tokens: int,
	overlap_tokens: int,
	enc=None,
) -> List[Tuple[int, int, str]]:
	"""Return list of (start_token, end_token_exclusive, text_segment)."""
	enc = enc or get_tokenizer()
	tokens = enc.encode(text)
	segments: List[Tuple[int, int, str]] = []
	if max_tokens <= 0:
		return [(0, len(tokens), text)]
	if overlap_tokens >= max_tokens:
		overlap_tokens = 0
	start = 0
	while start < len(tokens):
		end = min(start + max_tokens, len(tokens))
		segments.append((start, end, enc.decode(tokens[start:end])))
		if end == len(tokens):
			break
		start = end - overlap_tokens
	return segments


def is_web_url(source: str) -> bool:
	parts = urlsplit(source)
	return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)
