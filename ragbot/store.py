from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import lancedb

from .config import settings


logger = logging.getLogger(__name__)


@dataclass
class PartitionRecord:
	id: str
	document_id: str
	partition_number: int
	text: str
	vector: List[float]
	source_name: str
	link: str
	last_update: str

	def to_row(self) -> Dict:
		return {
			"id": self.id,
			"document_id": self.document_id,
			"partition_number": int(self.partition_number),
			"text": self.text,
			"vector": self.vector,
			"source_name": self.source_name,
			"link": self.link,
			"last_update": self.last_update,
		}


def _quote(value: str) -> str:
	return "'" + value.replace("'", "''") + "'"


class LanceDBStore:
	"""Partition table keyed by document id; one row per partition."""

	def __init__(self, db_path: str | None = None, table_name: str | None = None):
		self.db_path = db_path or settings.lancedb_path
		self.table_name = table_name or settings.lancedb_table
		Path(self.db_path).mkdir(parents=True, exist_ok=True)
		self.db = lancedb.connect(self.db_path)
		self.table = self.db.open_table(self.table_name) if self.table_name in self.db.table_names() else None
		self._lock = threading.Lock()

	def replace_document(self, document_id: str, records: List[PartitionRecord]) -> int:
		"""Drop any rows of ``document_id`` and insert ``records`` in their place."""
		rows = [r.to_row() for r in records]
		with self._lock:
			if self.table is not None:
				self.table.delete(f"document_id = {_quote(document_id)}")
			if not rows:
				return 0
			if self.table is None:
				self.table = self.db.create_table(self.table_name, data=rows)
			else:
				self.table.add(rows)
		logger.debug("Stored %d partitions for %s", len(rows), document_id)
		return len(rows)

	def has_document(self, document_id: str) -> bool:
		if self.table is None:
			return False
		return self.table.count_rows(f"document_id = {_quote(document_id)}") > 0

	def search(self, query_vector: List[float], top_k: int) -> List[Dict]:
		"""Nearest partitions by cosine distance, closest first.

		Each hit carries ``relevance`` = 1 - cosine distance.
		"""
		if self.table is None:
			return []
		hits = (
			self.table.search(query_vector)
			.distance_type("cosine")
			.select(["id", "document_id", "partition_number", "text", "source_name", "link", "last_update"])
			.limit(top_k)
			.to_list()
		)
		for h in hits:
			h["relevance"] = 1.0 - float(h.get("_distance", 1.0))
		return hits
