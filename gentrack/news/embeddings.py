"""Embedding generation using Model2Vec (lightweight, CPU-only)."""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "minishlab/potion-base-8M"

_models: dict[str, object] = {}


def get_model(model_name: str = DEFAULT_MODEL):
    """Lazy-load an embedding model, once per name."""
    if model_name not in _models:
        from model2vec import StaticModel

        logger.info("Loading embedding model: %s", model_name)
        _models[model_name] = StaticModel.from_pretrained(model_name)
    return _models[model_name]


def embed_texts(texts: list[str], model_name: str = DEFAULT_MODEL) -> np.ndarray:
    """Generate embeddings for a list of texts. Returns (N, D) array."""
    model = get_model(model_name)
    return model.encode(texts)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Compute cosine similarity between two vectors."""
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def article_text(title: str, description: str | None) -> str:
    return f"{title} {description or ''}".strip()
