from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .errors import IngestionError, ReadinessTimeout
from .models import DocumentStatus, QueryOutcome
from .presentation import GREETING, INVALID_INPUT_MESSAGE, render_answer, render_failure
from .utils import is_web_url


logger = logging.getLogger(__name__)

EXIT_COMMANDS = frozenset({"exit", "quit", ":q"})


class IngestionController:
    """Submits content sources to the memory, each under a caller-chosen id."""

    def __init__(self, memory) -> None:
        self._memory = memory

    def submit(self, source: str, document_id: str) -> str:
        """Import one file path or http(s) URL; returns once the import call returns.

        Failures are logged and re-raised as ``IngestionError``; there is no retry.
        """
        try:
            if is_web_url(source):
                self._memory.import_web_page(source, document_id)
            else:
                self._memory.import_document(source, document_id)
        except Exception as exc:
            logger.error("Error importing %s from %s", document_id, source, exc_info=True)
            raise IngestionError([document_id], origin=source, reason=str(exc)) from exc
        logger.info("Submitted %s (%s)", document_id, source)
        return document_id

    def submit_all(self, sources: Sequence[Tuple[str, str]]) -> List[str]:
        """Import ``(source, document_id)`` pairs concurrently and join.

        Every import is attempted; if any fail, one ``IngestionError`` names
        all failed ids.
        """
        ids = [document_id for _, document_id in sources]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate document ids: {', '.join(duplicates)}")
        if not sources:
            return []
        failed: List[IngestionError] = []
        with ThreadPoolExecutor(max_workers=len(sources), thread_name_prefix="ragbot-submit") as ex:
            futures = [ex.submit(self.submit, source, document_id) for source, document_id in sources]
            for fut in futures:
                try:
                    fut.result()
                except IngestionError as exc:
                    failed.append(exc)
        if failed:
            failed_ids = [i for exc in failed for i in exc.document_ids]
            raise IngestionError(failed_ids, reason="; ".join(exc.reason or "" for exc in failed))
        logger.info("Imports submitted: %s", ", ".join(ids))
        return ids


class ReadinessPoller:
    def __init__(
        self,
        memory,
        attempts: int = 10,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        timeout: float = 600.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._memory = memory
        self.attempts = max(1, attempts)
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def is_ready(self, document_ids: Iterable[str]) -> bool:
        # One check per id, no short-circuit
        results = [self._memory.is_document_ready(i) for i in document_ids]
        return all(results)

    def wait_until_ready(self, document_ids: Iterable[str]) -> None:
        """Poll with exponential backoff until every document is ready.

        Raises ``IngestionError`` as soon as one document is reported failed
        and ``ReadinessTimeout`` when attempts or time run out.
        """
        ids = list(document_ids)
        start = self._clock()
        delay = self.initial_delay
        pending = ids
        for attempt in range(1, self.attempts + 1):
            statuses = {i: self._memory.document_status(i) for i in ids}
            failed = [i for i, s in statuses.items() if s is DocumentStatus.FAILED]
            if failed:
                reasons = [self._memory.document_error(i) or "unknown error" for i in failed]
                raise IngestionError(failed, reason="; ".join(reasons))
            pending = [i for i, s in statuses.items() if s is not DocumentStatus.READY]
            if not pending:
                logger.info("All documents ready after %d check(s)", attempt)
                return
            elapsed = self._clock() - start
            if attempt == self.attempts or elapsed >= self.timeout:
                break
            wait = min(delay, self.timeout - elapsed)
            logger.info("Waiting %.1fs for %s (attempt %d/%d)", wait, ", ".join(pending), attempt, self.attempts)
            self._sleep(wait)
            delay = min(delay * 2, self.max_delay)
        raise ReadinessTimeout(pending, self._clock() - start)


class LoopState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    PROCESSING = "processing"
    TERMINATED = "terminated"


class QueryLoop:
    """Console question/answer loop.

    Reads a line, rejects blank input, forwards questions to the memory and
    prints the rendered answer. A failing question is logged and reported
    without ending the loop. Exit commands, EOF, Ctrl-C (at the prompt or
    while a question is being answered) and ``stop()`` end it.
    """

    def __init__(
        self,
        memory,
        input_fn: Callable[[str], str] = input,
        output: Callable[[str], None] = print,
        prompt: str = "> ",
        exit_commands: Iterable[str] = EXIT_COMMANDS,
    ) -> None:
        self._memory = memory
        self._input = input_fn
        self._output = output
        self._prompt = prompt
        self._exit_commands = {c.lower() for c in exit_commands}
        self.state = LoopState.AWAITING_INPUT
        self._stop_requested = False

    def stop(self) -> None:
        """Request termination; takes effect before the next read."""
        self._stop_requested = True
        if self.state is not LoopState.PROCESSING:
            self.state = LoopState.TERMINATED

    def run(self) -> None:
        self._output(GREETING)
        while not self._stop_requested:
            try:
                line = self._input(self._prompt)
            except (EOFError, KeyboardInterrupt):
                self.stop()
                break
            try:
                self.step(line)
            except KeyboardInterrupt:
                logger.info("Interrupted while answering a question")
                self.stop()
                self.state = LoopState.TERMINATED
                break
        logger.info("Chat loop terminated")

    def step(self, line: str) -> Optional[QueryOutcome]:
        """Handle one raw input line; returns the outcome when a question was asked."""
        text = line.strip()
        if text.lower() in self._exit_commands:
            self.stop()
            return None
        if not text:
            self._output(INVALID_INPUT_MESSAGE)
            return None
        return self.handle(text)

    def handle(self, question: str) -> QueryOutcome:
        self.state = LoopState.PROCESSING
        try:
            answer = self._memory.ask(question)
            rendered = render_answer(answer)
        except Exception as exc:
            logger.error("Error occurred while processing question %r", question, exc_info=True)
            outcome = QueryOutcome(question=question, error=exc)
            self._output(render_failure())
        else:
            outcome = QueryOutcome(question=question, answer=answer)
            self._output(rendered)
        self.state = LoopState.TERMINATED if self._stop_requested else LoopState.AWAITING_INPUT
        return outcome
