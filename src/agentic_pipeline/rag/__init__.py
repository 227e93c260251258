"""Optional semantic search over the repository."""

from agentic_pipeline.rag.embeddings import EmbeddingService
from agentic_pipeline.rag.exceptions import EmbeddingError, RAGError, RetrievalError, VectorStoreError
from agentic_pipeline.rag.retriever import Retriever
from agentic_pipeline.rag.vector_store import VectorStore

__all__ = [
    "EmbeddingError",
    "EmbeddingService",
    "RAGError",
    "RetrievalError",
    "Retriever",
    "VectorStore",
    "VectorStoreError",
]
