from __future__ import annotations

import logging
import re
import subprocess
import tempfile
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from .config import Settings, settings
from .utils import get_tokenizer, is_web_url, sliding_token_windows


logger = logging.getLogger(__name__)


def _normalize_text(text: str) -> str:
	"""Normalise converter output for chunking without changing its case.

	Applies Unicode NFKC, joins hyphenated line breaks and collapses runs of
	spaces and blank lines.
	"""
	s = unicodedata.normalize("NFKC", text)
	s = re.sub(r"(\w+)-\s*\n\s*(\w+)", r"\1\2", s, flags=re.UNICODE)
	s = s.replace("\r\n", "\n").replace("\r", "\n")
	s = s.replace("\t", " ")
	s = re.sub(r"[ ]{2,}", " ", s)
	s = re.sub(r"\n{3,}", "\n\n", s)
	return s.strip()


def _split_markdown_into_blocks(md: str) -> List[str]:
	"""Split Markdown into paragraph-level blocks, keeping fenced code intact."""
	blocks: List[str] = []
	buf: List[str] = []
	inside_code = False
	for line in md.splitlines() + [""]:
		strip = line.strip()
		if strip.startswith("```"):
			inside_code = not inside_code
			buf.append(line)
			continue
		if inside_code:
			buf.append(line)
			continue
		if strip == "":
			if buf:
				blocks.append("\n".join(buf).strip())
				buf = []
			continue
		buf.append(line)
	if buf:
		blocks.append("\n".join(buf).strip())
	return [b for b in blocks if b]


def _first_heading(md: str) -> str | None:
	for line in md.splitlines():
		m = re.match(r"^\s*#{1,6}\s+(.*\S)\s*$", line)
		if m:
			return m.group(1)
	return None


def _read_with_docling_api(source: str | Path):
	try:
		from docling.document_converter import DocumentConverter  # type: ignore
	except ImportError as e:
		raise ImportError(f"Docling API unavailable: {e}")
	converter = DocumentConverter()
	return converter.convert(str(source))


def _read_with_docling_cli(source: str | Path) -> str:
	# Fallback: use the docling CLI to get markdown
	with tempfile.TemporaryDirectory() as tmpdir:
		cmd = ["docling", str(source), "--to", "md", "--output", tmpdir]
		proc = subprocess.run(cmd, capture_output=True, text=True)
		if proc.returncode != 0:
			raise RuntimeError(f"Docling CLI failed: {proc.stderr}")
		outputs = sorted(Path(tmpdir).glob("*.md"))
		if not outputs:
			raise RuntimeError("Docling CLI produced no markdown output")
		return outputs[0].read_text(encoding="utf-8", errors="ignore")


def _docling_result_to_markdown(result) -> str:
	doc = getattr(result, "document", None)
	if doc is None:
		raise RuntimeError("Docling result has no document")
	for method_name in ("export_to_markdown", "export_markdown"):
		if hasattr(doc, method_name):
			exported = getattr(doc, method_name)()
			if isinstance(exported, str):
				return exported
	raise RuntimeError("Docling export functions not found")


def convert_to_markdown(source: str | Path, cfg: Settings | None = None) -> str:
	"""Convert a local file or a web page URL to Markdown with Docling."""
	cfg = cfg or settings
	if cfg.prefer_docling_api:
		try:
			return _docling_result_to_markdown(_read_with_docling_api(source))
		except Exception as exc:
			logger.warning("Docling API failed for %s, trying CLI: %s", source, exc)
	return _read_with_docling_cli(source)


def build_partitions(
	markdown: str,
	document_id: str,
	source_name: str,
	link: str,
	chunk_tokens: int | None = None,
	overlap_tokens: int | None = None,
	last_update: datetime | None = None,
	cfg: Settings | None = None,
) -> List[Dict]:
	"""Pack Markdown blocks into token-bounded partitions.

	Blocks are accumulated until the next one would overflow ``chunk_tokens``;
	a single block larger than the budget is cut with overlapping windows.
	"""
	cfg = cfg or settings
	chunk_tokens = chunk_tokens or cfg.chunk_size_tokens
	overlap_tokens = cfg.chunk_overlap_tokens if overlap_tokens is None else overlap_tokens
	stamp = (last_update or datetime.now(timezone.utc)).isoformat()
	enc = get_tokenizer()

	texts: List[str] = []
	acc: List[str] = []
	acc_tokens = 0
	for block in _split_markdown_into_blocks(_normalize_text(markdown)):
		b_tokens = len(enc.encode(block))
		if b_tokens > chunk_tokens:
			if acc:
				texts.append("\n\n".join(acc))
				acc, acc_tokens = [], 0
			texts.extend(seg for _, _, seg in sliding_token_windows(block, chunk_tokens, overlap_tokens, enc=enc))
			continue
		if acc and acc_tokens + b_tokens > chunk_tokens:
			texts.append("\n\n".join(acc))
			acc, acc_tokens = [], 0
		acc.append(block)
		acc_tokens += b_tokens
	if acc:
		texts.append("\n\n".join(acc))

	return [
		{
			"id": f"{document_id}::p{i}",
			"document_id": document_id,
			"partition_number": i,
			"text": text,
			"source_name": source_name,
			"link": link,
			"last_update": stamp,
		}
		for i, text in enumerate(texts)
	]


def ingest_source_to_partitions(
	source: str | Path,
	document_id: str,
	cfg: Settings | None = None,
) -> List[Dict]:
	"""Return partition records for a file path or http(s) URL.

	Chunk sizes and the Docling mode come from ``cfg`` (the loaded settings
	by default).
	"""
	cfg = cfg or settings
	source = str(source)
	if is_web_url(source):
		markdown = convert_to_markdown(source, cfg)
		source_name = _first_heading(markdown) or source
		link = source
	else:
		path = Path(source)
		if not path.exists():
			raise FileNotFoundError(path)
		markdown = convert_to_markdown(path, cfg)
		source_name = path.name
		link = path.resolve().as_uri()
	partitions = build_partitions(markdown, document_id, source_name, link, cfg=cfg)
	logger.info("Converted %s into %d partitions (document %s)", source, len(partitions), document_id)
	return partitions
