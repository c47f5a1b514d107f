"""
Embedding providers for article text.

Supports:
1. Ollama /api/embeddings over HTTP (default, no model in-process)
2. Local Sentence Transformers (EMBEDDING_PROVIDER=local)

Both expose generate(texts) -> one vector per text and raise ProviderError
on transport failures or empty results. Dimension checks are left to the
caller, which knows the configured vector size.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from ..config import Settings, get_settings
from ..errors import ProviderError

logger = logging.getLogger(__name__)

# Singleton for local model (avoids reloading on every provider instantiation)
_local_model = None
_local_model_name = None


def _get_local_model(model_name: str):
    """Load local sentence-transformers model (singleton, lazy-loaded)."""
    global _local_model, _local_model_name
    if _local_model is not None and _local_model_name == model_name:
        return _local_model

    from sentence_transformers import SentenceTransformer
    logger.info(f"Loading local embedding model: {model_name}...")
    _local_model = SentenceTransformer(model_name)
    _local_model_name = model_name
    logger.info(
        f"Local embedding model loaded: {model_name} "
        f"(dim={_local_model.get_sentence_embedding_dimension()})"
    )
    return _local_model


class EmbeddingProvider(ABC):
    """generate(texts) -> list of float vectors, same order as the input."""

    name = "embedding"

    @abstractmethod
    def generate(self, texts: List[str]) -> List[List[float]]:
        ...


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embeds via Ollama, one request per text."""

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def generate(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        url = f"{self.base_url}/api/embeddings"
        embeddings = []
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                for text in texts:
                    response = client.post(url, json={"model": self.model, "prompt": text})
                    response.raise_for_status()
                    embedding = response.json().get("embedding") or []
                    if not embedding:
                        raise ProviderError(f"Ollama ({self.model}) returned an empty embedding")
                    embeddings.append([float(v) for v in embedding])
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama embedding request failed: {e}") from e
        except ValueError as e:
            # Body was not JSON
            raise ProviderError(f"Ollama returned an unreadable response: {e}") from e
        return embeddings


class LocalEmbeddingProvider(EmbeddingProvider):
    """Embeds in-process with sentence-transformers."""

    name = "local"

    def __init__(self, model_name: str):
        self.model_name = model_name

    def generate(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            model = _get_local_model(self.model_name)
            vectors = model.encode(texts, show_progress_bar=False, normalize_embeddings=True)
        except Exception as e:
            raise ProviderError(f"Local embedding with {self.model_name} failed: {type(e).__name__}: {e}") from e

        result = vectors.tolist()
        if not result or not result[0]:
            raise ProviderError(f"Local model {self.model_name} returned no embedding")
        return result


def get_embedding_provider(settings: Optional[Settings] = None) -> EmbeddingProvider:
    """Build the provider selected by EMBEDDING_PROVIDER."""
    settings = settings or get_settings()
    provider = settings.embedding_provider.lower()
    if provider == "local":
        return LocalEmbeddingProvider(settings.local_embedding_model)
    if provider != "ollama":
        logger.warning(f"Unknown EMBEDDING_PROVIDER '{settings.embedding_provider}', using ollama")
    return OllamaEmbeddingProvider(
        base_url=settings.ollama_base_url,
        model=settings.ollama_embedding_model,
        timeout=settings.ollama_timeout,
    )


def generate_one(provider: EmbeddingProvider, text: str) -> List[float]:
    """Embed a single text, raising ProviderError when nothing comes back."""
    vectors = provider.generate([text])
    if not vectors or not vectors[0]:
        raise ProviderError(f"{provider.name} returned no embedding")
    return vectors[0]
