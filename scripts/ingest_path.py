from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Iterator, List, Tuple

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
	sys.path.insert(0, str(PROJECT_ROOT))

from ragbot.chatbot import IngestionController, ReadinessPoller
from ragbot.cli import configure_logging
from ragbot.config import load_settings
from ragbot.errors import RagBotError
from ragbot.memory import DocumentMemory
from ragbot.utils import is_web_url

ALLOWED_EXTS = {".pdf", ".docx", ".pptx", ".xlsx", ".html", ".htm", ".md", ".txt"}


def document_id_for(source: str) -> str:
	base = source if is_web_url(source) else Path(source).stem
	return re.sub(r"[^A-Za-z0-9_.-]+", "-", base).strip("-").lower()


def iter_sources(arg: str) -> Iterator[str]:
	if is_web_url(arg):
		yield arg
		return
	root = Path(arg)
	if root.is_file():
		if root.suffix.lower() in ALLOWED_EXTS:
			yield str(root)
		return
	for p in sorted(root.rglob("*")):
		if p.is_file() and p.suffix.lower() in ALLOWED_EXTS:
			yield str(p)


def main() -> int:
	if len(sys.argv) < 2:
		print("Usage: python scripts/ingest_path.py <file-dir-or-url> [...]", file=sys.stderr)
		return 1
	sources: List[Tuple[str, str]] = []
	for arg in sys.argv[1:]:
		if not is_web_url(arg) and not Path(arg).exists():
			print(f"Path not found: {arg}", file=sys.stderr)
			return 1
		sources.extend((s, document_id_for(s)) for s in iter_sources(arg))
	if not sources:
		print("Nothing to ingest", file=sys.stderr)
		return 1

	cfg = load_settings()
	configure_logging(cfg.log_level)
	try:
		with DocumentMemory(cfg.require_api_key(), cfg) as memory:
			ids = IngestionController(memory).submit_all(sources)
			ReadinessPoller(
				memory,
				attempts=cfg.readiness_attempts,
				initial_delay=cfg.readiness_initial_delay,
				max_delay=cfg.readiness_max_delay,
				timeout=cfg.readiness_timeout,
			).wait_until_ready(ids)
	except (RagBotError, ValueError) as exc:
		print(str(exc), file=sys.stderr)
		return 1
	for source, document_id in sources:
		print(f"Ingested {source} as {document_id}")
	return 0


if __name__ == "__main__":
	sys.exit(main())
