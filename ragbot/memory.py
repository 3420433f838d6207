from __future__ import annotations

import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import Settings, settings as default_settings
from .doc_ingest import ingest_source_to_partitions
from .generation import NOT_FOUND_ANSWER, ChatCompletionsClient
from .models import DocumentStatus, MemoryAnswer, Partition, RelevantSource, SourceDocument
from .store import LanceDBStore, PartitionRecord
from .utils import is_web_url


logger = logging.getLogger(__name__)


class DocumentMemory:
    """Serverless document memory: import sources, check readiness, ask questions.

    Imports are queued on a worker pool and return immediately; the status of
    each document moves from ``pending`` to ``ready`` or ``failed`` when its
    worker finishes. Documents stored by an earlier run count as ready.

    The store, embedder, generator and converter are built from settings
    unless injected.
    """

    def __init__(
        self,
        api_key: str,
        cfg: Settings | None = None,
        *,
        store: Any = None,
        embedder: Any = None,
        generator: Any = None,
        converter: Optional[Callable[[str, str], List[Dict]]] = None,
    ) -> None:
        self._settings = cfg or default_settings
        if embedder is None:
            from .embedding import EmbeddingModel

            embedder = EmbeddingModel(self._settings)
        self._embedder = embedder
        self._store = store or LanceDBStore(self._settings.lancedb_path, self._settings.lancedb_table)
        self._generator = generator or ChatCompletionsClient(api_key, self._settings)
        self._converter = converter or functools.partial(ingest_source_to_partitions, cfg=self._settings)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self._settings.ingest_workers),
            thread_name_prefix="ragbot-ingest",
        )
        self._documents: Dict[str, SourceDocument] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "DocumentMemory":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # Import

    def import_document(self, path: str | Path, document_id: str) -> str:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Document not found: {path}")
        return self._schedule(SourceDocument(document_id=document_id, origin=str(path), kind="file"))

    def import_web_page(self, url: str, document_id: str) -> str:
        if not is_web_url(url):
            raise ValueError(f"Not an http(s) URL: {url!r}")
        return self._schedule(SourceDocument(document_id=document_id, origin=url, kind="web"))

    def _schedule(self, doc: SourceDocument) -> str:
        with self._lock:
            self._documents[doc.document_id] = doc
            self._executor.submit(self._ingest, doc)
        logger.info("Queued %s %s as %s", doc.kind, doc.origin, doc.document_id)
        return doc.document_id

    def _ingest(self, doc: SourceDocument) -> None:
        try:
            partitions = self._converter(doc.origin, doc.document_id)
            if not partitions:
                raise ValueError("no text could be extracted")
            vectors = self._embedder.embed([p["text"] for p in partitions])
            records = [
                PartitionRecord(
                    id=p["id"],
                    document_id=doc.document_id,
                    partition_number=int(p["partition_number"]),
                    text=p["text"],
                    vector=vectors[i],
                    source_name=p["source_name"],
                    link=p["link"],
                    last_update=p["last_update"],
                )
                for i, p in enumerate(partitions)
            ]
            with self._lock:
                # A newer import of the same id owns the stored partitions
                if not self._is_current(doc):
                    logger.info("Discarding superseded import of %s (%s)", doc.document_id, doc.origin)
                    return
                self._store.replace_document(doc.document_id, records)
        except Exception as exc:
            # The worker reports failure through the document status
            logger.exception("Ingestion of %s (%s) failed", doc.document_id, doc.origin)
            self._set_status(doc, DocumentStatus.FAILED, str(exc))
            return
        if self._set_status(doc, DocumentStatus.READY):
            logger.info("Document %s is ready (%d partitions)", doc.document_id, len(records))

    def _is_current(self, doc: SourceDocument) -> bool:
        return self._documents.get(doc.document_id) is doc

    def _set_status(self, doc: SourceDocument, status: DocumentStatus, error: str | None = None) -> bool:
        """Record a worker result unless the import was superseded by a re-import."""
        with self._lock:
            if not self._is_current(doc):
                return False
            doc.status = status
            doc.error = error
            return True

    # Status

    def document_status(self, document_id: str) -> DocumentStatus:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is not None:
                return doc.status
        return DocumentStatus.READY if self._store.has_document(document_id) else DocumentStatus.PENDING

    def document_error(self, document_id: str) -> str | None:
        with self._lock:
            doc = self._documents.get(document_id)
            return doc.error if doc is not None else None

    def is_document_ready(self, document_id: str) -> bool:
        return self.document_status(document_id) is DocumentStatus.READY

    # Query

    def ask(self, question: str) -> MemoryAnswer:
        query_vector = self._embedder.embed_query(question)
        hits = [
            h
            for h in self._store.search(query_vector, top_k=self._settings.search_top_k)
            if h["relevance"] >= self._settings.min_relevance
        ]
        if not hits:
            logger.info("No relevant partitions for question %r", question)
            return MemoryAnswer(question=question, result=NOT_FOUND_ANSWER)
        result = self._generator.answer(question, [h["text"] for h in hits])
        if result.strip() == NOT_FOUND_ANSWER:
            return MemoryAnswer(question=question, result=NOT_FOUND_ANSWER)
        return MemoryAnswer(question=question, result=result, relevant_sources=self._group_sources(hits))

    @staticmethod
    def _group_sources(hits: List[Dict]) -> List[RelevantSource]:
        """One source per document, ordered by its best hit; partitions keep hit order."""
        sources: Dict[str, RelevantSource] = {}
        for h in hits:
            src = sources.get(h["document_id"])
            if src is None:
                src = RelevantSource(
                    document_id=h["document_id"],
                    source_name=h["source_name"],
                    link=h["link"],
                )
                sources[h["document_id"]] = src
            src.partitions.append(
                Partition(
                    text=h["text"],
                    partition_number=int(h["partition_number"]),
                    last_update=datetime.fromisoformat(h["last_update"]),
                )
            )
        return list(sources.values())
