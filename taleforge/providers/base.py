"""
Abstract base class for narrator providers using LangChain
"""

import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage
from pydantic import BaseModel

from taleforge.utils.logger import get_logger

logger = get_logger(__name__)


class ProviderResponse(BaseModel):
    """Response from an LLM provider"""

    content: str
    usage: Optional[Dict[str, Any]] = None
    model: Optional[str] = None


def contract_name(json_schema: Optional[Dict[str, Any]]) -> str:
    """Title of the requested output contract, or "text" for free-form calls"""
    if json_schema is None:
        return "text"
    return str(json_schema.get("title") or "json")


class BaseProvider(ABC):
    """
    A chat model the narrator and the campaign architect can talk to.

    Implementations take LangChain messages and, when a JSON schema is given,
    return the structured object JSON-encoded in ``content`` so callers can
    validate it the same way whatever the backend.
    """

    def __init__(self, api_base: str, api_key: str, model_name: str):
        self.api_base = api_base
        self.api_key = api_key
        self.model_name = model_name
        self.llm: Any = None  # Set by LangChain-backed subclasses

    def _log_llm_call(
        self, messages: List[BaseMessage], json_schema: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log the outgoing call and return a short id to correlate its result"""
        call_id = uuid.uuid4().hex[:8]
        prompt_chars = sum(len(str(m.content)) for m in messages)
        logger.info(
            f"[LLM] {contract_name(json_schema)} call to {self.model_name}: "
            f"{len(messages)} messages, {prompt_chars} chars",
            extra={
                "component": "LLM",
                "call_id": call_id,
                "provider": type(self).__name__,
                "message_types": [m.type for m in messages],
            },
        )
        return call_id

    def _log_llm_response(
        self,
        call_id: str,
        response: Optional[ProviderResponse],
        duration_ms: float,
        error: Optional[Exception] = None,
    ) -> None:
        context = {"component": "LLM", "call_id": call_id, "duration_ms": duration_ms}
        if error is not None:
            logger.error(
                f"[LLM] Call to {self.model_name} failed after {duration_ms}ms: "
                f"{type(error).__name__}: {error}",
                extra=context,
            )
            return

        logger.info(
            f"[LLM] Call to {self.model_name} answered in {duration_ms}ms "
            f"({len(response.content) if response else 0} chars)",
            extra={**context, "usage": response.usage if response else None},
        )

    @abstractmethod
    async def chat(
        self,
        messages: List[BaseMessage],
        json_schema: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> ProviderResponse:
        """
        Send a chat request to the LLM provider

        Args:
            messages: List of LangChain message objects
            json_schema: Optional JSON schema for structured output; when
                given, the response content is the JSON-encoded object
            **kwargs: Additional provider-specific parameters

        Returns:
            ProviderResponse
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is healthy and accessible"""
        pass
