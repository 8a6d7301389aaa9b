"""Semantic similarity from sentence embeddings."""

from typing import Optional

import numpy as np

from ..utils.logging import get_logger
from .base import SemanticOracle

logger = get_logger(__name__)


class EmbeddingSimilarityOracle(SemanticOracle):
    """Cosine similarity of sentence-transformer embeddings, mapped to [0, 1].

    Runs locally, so ``timeout`` is accepted for interface compatibility but
    not enforced.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", model=None):
        self.model_name = model_name
        self._model = model

    @property
    def name(self) -> str:
        return f"embedding:{self.model_name}"

    @property
    def model(self):
        """Lazy load the SentenceTransformer."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            logger.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def similarity(self, text_a: str, text_b: str, timeout: Optional[float] = None) -> float:
        embeddings = self.model.encode([text_a, text_b])
        emb_a = np.asarray(embeddings[0], dtype=float)
        emb_b = np.asarray(embeddings[1], dtype=float)

        cosine = np.dot(emb_a, emb_b) / (
            np.linalg.norm(emb_a) * np.linalg.norm(emb_b) + 1e-8
        )
        return float(np.clip((cosine + 1) / 2, 0.0, 1.0))
