"""
Client for the external semantic memory service.

The service extracts facts and a relation graph from conversation snippets
and answers semantic queries across sessions. Every call is best-effort:
failures are logged and reported as ``None`` so the conversation continues.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from ..llm.base import LLMMessage

logger = structlog.get_logger()

DEFAULT_USER_ID = "default_user"


def _records(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _score(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class MemoryFact:
    id: str
    memory: str
    score: float = 0.0


@dataclass
class MemoryRelation:
    source: str
    relationship: str
    target: str

    def __str__(self) -> str:
        return f"{self.source} {self.relationship} {self.target}"


@dataclass
class MemorySearchResult:
    """Facts and graph relations returned by a semantic search."""

    results: list[MemoryFact] = field(default_factory=list)
    relations: list[MemoryRelation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.results and not self.relations

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "MemorySearchResult":
        return cls(
            results=[
                MemoryFact(
                    id=str(item.get("id", "")),
                    memory=item.get("memory", ""),
                    score=_score(item.get("score")),
                )
                for item in _records(payload.get("results"))
            ],
            relations=[
                MemoryRelation(
                    source=item.get("source", ""),
                    relationship=item.get("relationship", ""),
                    target=item.get("target", ""),
                )
                for item in _records(payload.get("relations"))
            ],
        )


class MemoryServiceClient:
    """HTTP client for the semantic memory service."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:3899",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def store_messages(
        self,
        messages: list[LLMMessage] | str,
        user_id: str = DEFAULT_USER_ID,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Send messages for fact and graph extraction."""
        payload: dict[str, Any] = {
            "messages": messages if isinstance(messages, str) else [
                {"role": m.role, "content": m.content} for m in messages
            ],
            "user_id": user_id,
        }
        if metadata:
            payload["metadata"] = metadata

        try:
            async with self._client() as client:
                response = await client.post("/api/messages", json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Memory service store failed", error=str(e))
            return None

        if not isinstance(data, dict):
            logger.error(
                "Memory service returned an unexpected payload",
                payload_type=type(data).__name__,
            )
            return None
        return data

    async def search_related(
        self,
        query: str,
        user_id: str = DEFAULT_USER_ID,
        limit: int | None = None,
    ) -> MemorySearchResult | None:
        """Semantic search over stored facts and relations."""
        payload: dict[str, Any] = {"query": query, "user_id": user_id}
        if limit is not None:
            payload["limit"] = limit

        try:
            async with self._client() as client:
                response = await client.post("/api/messages/related", json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            # ValueError covers a body that is not JSON
            logger.error("Memory service search failed", error=str(e))
            return None

        if not isinstance(data, dict) or data.get("status") != "success":
            return None
        results = data.get("results")
        if not isinstance(results, dict) or not results:
            return None
        return MemorySearchResult.from_payload(results)
