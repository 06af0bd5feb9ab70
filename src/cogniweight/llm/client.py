"""
DeepSeek Client – question, embedding and link-inference service
=================================================================
Async HTTP client for an OpenAI-compatible chat/embedding API.

Every call opens its own ``aiohttp.ClientSession`` and is bounded by
``ServiceConfig.timeout_seconds``. Failures surface as:

    ServiceError            network error, timeout or non-200 status
    MalformedResponseError  body that is not the expected JSON shape

Retrying is the caller's decision (see ``QuestionGenerator``).
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from loguru import logger

from cogniweight.core.config import ServiceConfig
from cogniweight.core.exceptions import (
    InvalidApiKeyError,
    MalformedResponseError,
    ServiceError,
)


LINK_EXCERPT_CHARS = 200


class DeepSeekClient:
    """Client for the remote chat / embedding service."""

    def __init__(self, config: Optional[ServiceConfig] = None):
        self.config = config or ServiceConfig()
        base = self.config.base_url.rstrip("/")
        self._chat_url = f"{base}/chat/completions"
        self._embedding_url = f"{base}/embeddings"

    # ---- Transport ------------------------------------------------ #

    def _headers(self, api_key: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        key = api_key if api_key is not None else self.config.api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"
        return headers

    async def _post(
        self,
        operation: str,
        url: str,
        payload: Dict[str, Any],
        api_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=payload,
                    headers=self._headers(api_key),
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
                ) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        raise ServiceError(
                            operation,
                            f"HTTP {resp.status}: {error_text[:200]}",
                            status=resp.status,
                        )
                    try:
                        return await resp.json()
                    except (aiohttp.ContentTypeError, ValueError) as e:
                        raise MalformedResponseError(f"{operation} returned non-JSON body: {e}")
        except asyncio.TimeoutError:
            raise ServiceError(operation, f"timed out after {self.config.timeout_seconds}s")
        except aiohttp.ClientError as e:
            raise ServiceError(operation, str(e))

    @staticmethod
    def _message_content(data: Dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponseError("missing choices[0].message.content", payload=json.dumps(data)[:200])
        if not isinstance(content, str):
            raise MalformedResponseError("message content is not text")
        return content.strip()

    # ---- Operations ----------------------------------------------- #

    async def chat(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        response_format: Optional[Dict[str, str]] = None,
    ) -> str:
        """Single-turn chat completion; returns the message content."""
        payload: Dict[str, Any] = {
            "model": self.config.chat_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": self.config.max_tokens if max_tokens is None else max_tokens,
            "top_p": self.config.top_p if top_p is None else top_p,
        }
        if response_format:
            payload["response_format"] = response_format
        data = await self._post("chat", self._chat_url, payload)
        return self._message_content(data)

    async def embed(self, text: str) -> List[float]:
        """Semantic embedding vector for ``text``."""
        payload = {"input": text, "model": self.config.embedding_model}
        data = await self._post("embed", self._embedding_url, payload)
        try:
            vector = data["data"][0]["embedding"]
            return [float(v) for v in vector]
        except (KeyError, IndexError, TypeError, ValueError):
            raise MalformedResponseError("missing data[0].embedding", payload=json.dumps(data)[:200])

    @staticmethod
    def build_link_prompt(source_text: str, candidates: Sequence[Tuple[str, str]]) -> str:
        lines = [
            "Analyse how the source note relates to each candidate note.",
            f"Source note:\n{source_text[:1000]}",
            "Candidate notes (id: excerpt):",
        ]
        for node_id, content in candidates:
            excerpt = " ".join((content or "").split())[:LINK_EXCERPT_CHARS]
            lines.append(f"- {node_id}: {excerpt}")
        lines.append(
            'Respond with a JSON object {"links": [{"targetId": <candidate id>, '
            '"relation": <short label>, "confidence": <0..1>}]}.'
        )
        return "\n".join(lines)

    @staticmethod
    def parse_links(content: str) -> List[Dict[str, Any]]:
        """
        Accept either a bare JSON array or an object holding one. Entries
        without a string ``targetId`` or a numeric ``confidence`` are dropped.
        """
        try:
            parsed = json.loads(content)
        except ValueError:
            raise MalformedResponseError("link inference did not return JSON", payload=content)

        if isinstance(parsed, dict):
            items = parsed.get("links")
            if items is None:
                items = next((v for v in parsed.values() if isinstance(v, list)), None)
        else:
            items = parsed
        if not isinstance(items, list):
            raise MalformedResponseError("link inference JSON holds no list", payload=content)

        links = []
        for item in items:
            if not isinstance(item, dict):
                continue
            target = item.get("targetId")
            confidence = item.get("confidence")
            if not isinstance(target, str) or not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
                continue
            links.append({
                "targetId": target,
                "relation": str(item.get("relation", "related")),
                "confidence": float(confidence),
            })
        return links

    async def infer_links(self, source_text: str, candidates: Sequence[Tuple[str, str]]) -> List[Dict[str, Any]]:
        """Ask the service which candidates relate to ``source_text``."""
        if not candidates:
            return []
        prompt = self.build_link_prompt(source_text, candidates)
        content = await self.chat(prompt, response_format={"type": "json_object"})
        links = self.parse_links(content)
        logger.debug(f"Link inference returned {len(links)} relations for {len(candidates)} candidates")
        return links

    # ---- Key validation ------------------------------------------- #

    def check_key_format(self, api_key: Optional[str] = None) -> str:
        key = self.config.api_key if api_key is None else api_key
        if not key:
            raise InvalidApiKeyError("API key is empty")
        if not key.startswith(self.config.key_prefix):
            raise InvalidApiKeyError(f"API key must start with '{self.config.key_prefix}'")
        return key

    async def validate_api_key(self, api_key: Optional[str] = None) -> bool:
        """
        True when the service answers a trivial prompt with HTTP 200 and a
        non-empty message. Malformed keys are rejected without a request.
        """
        try:
            key = self.check_key_format(api_key)
        except InvalidApiKeyError as e:
            logger.warning(str(e))
            return False

        payload = {
            "model": self.config.chat_model,
            "messages": [{"role": "user", "content": "Hello"}],
            "temperature": 0.1,
            "max_tokens": 5,
        }
        try:
            data = await self._post("validate_api_key", self._chat_url, payload, api_key=key)
            return bool(self._message_content(data))
        except (ServiceError, MalformedResponseError) as e:
            logger.warning(f"API key validation failed: {e}")
            return False


__all__ = ["DeepSeekClient"]
