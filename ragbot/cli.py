from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional

from .chatbot import IngestionController, QueryLoop, ReadinessPoller
from .config import Settings, load_settings
from .errors import ConfigurationError, IngestionError, ReadinessTimeout


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIG = 2
EXIT_INGESTION = 3
EXIT_NOT_READY = 4
EXIT_INTERRUPTED = 130

DOCUMENT_ID = "doc001"
WEB_PAGE_ID = "doc002"

NOT_READY_MESSAGE = "Documents are not ready yet. Please try again later."
INTERRUPTED_MESSAGE = "Interrupted."


def configure_logging(level: str) -> None:
	logging.basicConfig(
		level=getattr(logging, level.upper(), logging.INFO),
		format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
		stream=sys.stderr,
	)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
	p = argparse.ArgumentParser(prog="ragbot", description="Ask questions about a PDF and a web page")
	p.add_argument("--document", default=None, help="PDF (or other file) to import as doc001")
	p.add_argument("--web-page", default=None, help="Web page URL to import as doc002")
	p.add_argument("--skip-import", action="store_true", help="Use documents stored by a previous run")
	p.add_argument("--no-wait", action="store_true", help="Check readiness once instead of polling")
	p.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
	return p.parse_args(argv)


def _default_memory_factory(api_key: str, cfg: Settings):
	from .memory import DocumentMemory

	return DocumentMemory(api_key, cfg)


def main(
	argv: Optional[List[str]] = None,
	memory_factory: Callable[[str, Settings], object] = _default_memory_factory,
	input_fn: Callable[[str], str] = input,
	output: Callable[[str], None] = print,
) -> int:
	args = parse_args(argv)
	cfg = load_settings()
	configure_logging(args.log_level or cfg.log_level)

	try:
		api_key = cfg.require_api_key()
	except ConfigurationError as exc:
		output(str(exc))
		return EXIT_CONFIG

	sources = [
		(args.document or cfg.document_path, DOCUMENT_ID),
		(args.web_page or cfg.web_page_url, WEB_PAGE_ID),
	]
	ids = [document_id for _, document_id in sources]
	memory = None
	try:
		memory = memory_factory(api_key, cfg)
		if not args.skip_import:
			output("Importing documents into memory...")
			IngestionController(memory).submit_all(sources)

		poller = ReadinessPoller(
			memory,
			attempts=cfg.readiness_attempts,
			initial_delay=cfg.readiness_initial_delay,
			max_delay=cfg.readiness_max_delay,
			timeout=cfg.readiness_timeout,
		)
		if args.no_wait:
			if not poller.is_ready(ids):
				output(NOT_READY_MESSAGE)
				return EXIT_NOT_READY
		else:
			poller.wait_until_ready(ids)

		QueryLoop(memory, input_fn=input_fn, output=output).run()
		return EXIT_OK
	except IngestionError as exc:
		output(str(exc))
		return EXIT_INGESTION
	except ReadinessTimeout as exc:
		logger.warning("%s", exc)
		output(NOT_READY_MESSAGE)
		return EXIT_NOT_READY
	except KeyboardInterrupt:
		logger.info("Interrupted before the chat started")
		output(INTERRUPTED_MESSAGE)
		return EXIT_INTERRUPTED
	except Exception:
		logger.exception("An error occurred while starting the chat.")
		return EXIT_UNEXPECTED
	finally:
		if memory is not None and hasattr(memory, "close"):
			memory.close()


if __name__ == "__main__":
	sys.exit(main())
