"""Vector store using ChromaDB."""

import json
from pathlib import PurePosixPath
from typing import Any, Optional

import chromadb

from agentic_pipeline.models import EmbeddingRecord

DEFAULT_COLLECTION = "code_elements"


def _validate_file_path(file_path: str) -> None:
    if ".." in PurePosixPath(file_path).parts:
        raise ValueError(f"Invalid file_path: path traversal detected in '{file_path}'")


def _metadata(record: EmbeddingRecord) -> dict[str, Any]:
    return {
        "file_path": record.file_path,
        "symbol": record.symbol,
        "type": record.type,
        "hash": record.hash,
        "imports": json.dumps(record.imports),
    }


def _decode_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    result = dict(metadata or {})
    if isinstance(result.get("imports"), str):
        result["imports"] = json.loads(result["imports"])
    return result


class VectorStore:
    """Persistent cosine-distance collection of code element embeddings."""

    def __init__(
        self,
        persist_dir: str = "./data/embeddings",
        collection_name: str = DEFAULT_COLLECTION,
        client: Any = None,
    ):
        self.client = client or chromadb.PersistentClient(path=persist_dir)
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, records: list[EmbeddingRecord]) -> None:
        """Insert or update records that carry an embedding vector.

        Raises:
            ValueError: If any record has an invalid file_path.
        """
        embedded = [r for r in records if r.embedding_vector is not None]
        if not embedded:
            return
        for record in embedded:
            _validate_file_path(record.file_path)
        self.collection.upsert(
            ids=[r.id for r in embedded],
            embeddings=[r.embedding_vector for r in embedded],  # type: ignore[misc]
            documents=[r.source_code for r in embedded],
            metadatas=[_metadata(r) for r in embedded],  # type: ignore[arg-type]
        )

    def delete(self, ids: list[str]) -> None:
        if ids:
            self.collection.delete(ids=ids)

    def query_by_embedding(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        where: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """Return the ``top_k`` nearest records as dicts with id, document, metadata, distance."""
        results = self.collection.query(
            query_embeddings=[query_embedding],  # type: ignore[arg-type]
            n_results=top_k,
            where=where,
        )
        ids = (results.get("ids") or [[]])[0]
        if not ids:
            return []
        documents = (results.get("documents") or [[None] * len(ids)])[0]
        metadatas = (results.get("metadatas") or [[{}] * len(ids)])[0]
        distances = (results.get("distances") or [[0.0] * len(ids)])[0]
        return [
            {
                "id": record_id,
                "document": documents[i],
                "metadata": _decode_metadata(metadatas[i]),  # type: ignore[arg-type]
                "distance": distances[i],
            }
            for i, record_id in enumerate(ids)
        ]

    def get_all_hashes(self) -> dict[str, str]:
        """Map every stored record id to the content hash it was embedded from."""
        results = self.collection.get(include=["metadatas"])
        ids = results.get("ids") or []
        metadatas = results.get("metadatas") or [{}] * len(ids)
        return {
            record_id: str((metadata or {}).get("hash", ""))
            for record_id, metadata in zip(ids, metadatas)
        }
