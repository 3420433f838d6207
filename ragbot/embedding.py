from __future__ import annotations

import logging
import threading
from typing import Iterable, List

import torch
from sentence_transformers import SentenceTransformer

from .config import Settings, settings


logger = logging.getLogger(__name__)


def _resolve_device(device: str) -> str:
	if device == "cuda" and not torch.cuda.is_available():
		logger.warning("CUDA requested but not available, embedding on CPU")
		return "cpu"
	return device


class EmbeddingModel:
	"""Partition and question encoder shared by ingestion workers and the query loop."""

	def __init__(self, cfg: Settings | None = None):
		cfg = cfg or settings
		self.model_id = cfg.embedding_model_id
		self.device = _resolve_device(cfg.device)
		self.batch_size = max(1, cfg.batch_size_embed)
		self.normalize = cfg.normalize_embeddings
		self.model = SentenceTransformer(self.model_id, device=self.device)
		self._lock = threading.Lock()

	def embed(self, texts: Iterable[str]) -> List[List[float]]:
		batch = list(texts)
		if not batch:
			return []
		# SentenceTransformer.encode is not safe to call from several threads at once
		with self._lock:
			vectors = self.model.encode(
				batch,
				batch_size=self.batch_size,
				normalize_embeddings=self.normalize,
				convert_to_numpy=True,
				show_progress_bar=False,
			)
		return vectors.tolist()

	def embed_query(self, question: str) -> List[float]:
		return self.embed([question])[0]
