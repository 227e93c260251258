"""Semantic search over a repository's code elements."""

import logging

from agentic_pipeline.models import EmbeddingRecord, RepoIndex, RetrievalResult
from agentic_pipeline.rag.embeddings import EmbeddingService
from agentic_pipeline.rag.exceptions import EmbeddingError, RetrievalError, VectorStoreError
from agentic_pipeline.rag.vector_store import VectorStore

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 8000
MAX_TOP_K = 1000


def build_records(repo_index: RepoIndex) -> list[EmbeddingRecord]:
    """One record per symbol; files without symbols are embedded whole."""
    records = []
    for file_info in repo_index.files:
        if file_info.errors:
            continue
        for symbol in file_info.symbols:
            records.append(EmbeddingRecord(
                id=f"{file_info.relative_path}::{symbol.name}:{symbol.start_line}",
                file_path=file_info.relative_path,
                symbol=symbol.name,
                type=symbol.type,
                source_code=symbol.source_code,
                hash=file_info.hash,
                imports=file_info.imports,
            ))
    return [r for r in records if r.source_code.strip()]


class Retriever:
    """Answers natural-language queries with the closest indexed code elements."""

    def __init__(self, embedding_service: EmbeddingService, vector_store: VectorStore):
        self.embedding_service = embedding_service
        self.vector_store = vector_store

    def query(
        self,
        query: str,
        top_k: int = 10,
        similarity_threshold: float = 0.3,
    ) -> list[RetrievalResult]:
        """Return up to ``top_k`` elements similar to ``query``, most similar first.

        Raises:
            RetrievalError: If the query or limits are invalid
            EmbeddingError: If the query cannot be embedded
            VectorStoreError: If the store cannot be queried
        """
        if not query or not query.strip():
            raise RetrievalError("Query cannot be empty")
        if len(query) > MAX_QUERY_LENGTH:
            query = query[:MAX_QUERY_LENGTH]
        if not 1 <= top_k <= MAX_TOP_K:
            raise RetrievalError(f"top_k must be between 1 and {MAX_TOP_K}")
        if not 0.0 <= similarity_threshold <= 1.0:
            raise RetrievalError("similarity_threshold must be between 0.0 and 1.0")

        try:
            query_embedding = self.embedding_service.embed_texts([query])[0]
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to embed query: {e}") from e

        try:
            raw_results = self.vector_store.query_by_embedding(query_embedding, top_k=top_k)
        except Exception as e:
            raise VectorStoreError(f"Failed to query vector store: {e}") from e

        results = []
        for raw in raw_results:
            distance = raw.get("distance", 0.0)
            # Cosine distance
            similarity = 1.0 - distance
            if similarity < similarity_threshold:
                continue
            metadata = raw.get("metadata", {})
            results.append(RetrievalResult(
                id=raw["id"],
                file_path=metadata.get("file_path", ""),
                symbol=metadata.get("symbol", ""),
                type=metadata.get("type", ""),
                source_code=raw.get("document") or "",
                distance=distance,
                similarity=similarity,
                metadata=metadata,
            ))
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results

    def index_repo(self, repo_index: RepoIndex, force: bool = False) -> dict[str, int]:
        """Embed new or changed elements and drop removed ones.

        Args:
            repo_index: Repository index to embed
            force: Re-embed everything regardless of stored hashes

        Returns:
            Statistics with keys total, embedded, skipped, deleted
        """
        records = build_records(repo_index)
        existing = {} if force else self.vector_store.get_all_hashes()
        stale = [r for r in records if force or existing.get(r.id) != r.hash]
        if stale:
            self.vector_store.upsert(self.embedding_service.embed_records(stale))

        current_ids = {r.id for r in records}
        removed = [record_id for record_id in existing if record_id not in current_ids]
        self.vector_store.delete(removed)

        stats = {
            "total": len(records),
            "embedded": len(stale),
            "skipped": len(records) - len(stale),
            "deleted": len(removed),
        }
        logger.info("Semantic index updated: %s", stats)
        return stats
