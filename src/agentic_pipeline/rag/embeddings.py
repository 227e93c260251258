"""Embedding service using the OpenAI API."""

import logging
import os
import time
from typing import Optional

import openai

from agentic_pipeline.models import EmbeddingRecord
from agentic_pipeline.rag.exceptions import EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
RETRY_DELAYS = (1, 2, 4)


class EmbeddingService:
    """Turns code snippets and queries into embedding vectors."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        batch_size: int = 100,
        client: Optional[openai.OpenAI] = None,
    ):
        """Initialize the embedding service.

        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY env var.
            model: Model to use for embeddings.
            batch_size: Number of texts to embed in a single API call.
            client: Pre-built OpenAI client (tests).

        Raises:
            EmbeddingError: If no client is given and no API key is available.
        """
        if client is None:
            api_key = api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise EmbeddingError(
                    "OpenAI API key must be provided or set in OPENAI_API_KEY env var"
                )
            client = openai.OpenAI(api_key=api_key)
        self.client = client
        self.model = model
        self.batch_size = batch_size

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in batches, preserving order.

        Raises:
            EmbeddingError: If a batch still fails after retries.
        """
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            vectors.extend(self._embed_batch(texts[start : start + self.batch_size]))
        return vectors

    def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        for attempt, delay in enumerate(RETRY_DELAYS, start=1):
            try:
                response = self.client.embeddings.create(input=batch, model=self.model)
                return [item.embedding for item in response.data]
            except (openai.RateLimitError, openai.APIConnectionError) as e:
                if attempt == len(RETRY_DELAYS):
                    raise EmbeddingError(f"Embedding failed after {attempt} attempts: {e}") from e
                logger.info("Embedding attempt %d failed, retrying in %ss", attempt, delay)
                time.sleep(delay)
        raise EmbeddingError("Embedding retry loop exhausted")

    def embed_records(self, records: list[EmbeddingRecord]) -> list[EmbeddingRecord]:
        """Set ``embedding_vector`` on each record in place and return them."""
        vectors = self.embed_texts([record.source_code for record in records])
        for record, vector in zip(records, vectors):
            record.embedding_vector = vector
        return records
