"""Client for the embedding service that turns query and catalog text into vectors."""

from typing import List, Optional

import httpx
import numpy as np
import structlog

logger = structlog.get_logger("search_service.embeddings")


class EmbeddingServiceError(Exception):
    """The embedding service returned an error or an empty payload."""
    pass


class QueryEmbedder:
    """Embeds text through ``POST {base_url}/api/v1/embed``."""

    def __init__(
        self,
        base_url: str,
        model: str = "default",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def embed(self, text: str) -> np.ndarray:
        """Return the embedding of ``text``."""
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        """Embed a batch of texts in one request; output order matches input."""
        response = await self.http_client.post(
            f"{self.base_url}/api/v1/embed",
            json={
                "items": [{"text": text} for text in texts],
                "model": self.model
            }
        )

        if response.status_code != 200:
            raise EmbeddingServiceError(f"Embedding service returned status {response.status_code}")

        vectors = response.json().get("vectors", [])
        if len(vectors) != len(texts) or not vectors:
            raise EmbeddingServiceError(
                f"Embedding service returned {len(vectors)} vectors for {len(texts)} texts"
            )

        return [np.asarray(vector, dtype=np.float32) for vector in vectors]

    async def close(self) -> None:
        await self.http_client.aclose()
