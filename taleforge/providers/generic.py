"""
Generic HTTP provider for OpenAI-compatible endpoints using LangChain
"""

import json
import time
from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage
from langchain_openai import ChatOpenAI

from taleforge.utils.logger import get_logger

from .base import BaseProvider, ProviderResponse

logger = get_logger(__name__)


class GenericProvider(BaseProvider):
    """Generic provider for OpenAI-compatible endpoints using LangChain"""

    temperature = 0.8

    def __init__(self, api_base: str, api_key: str, model_name: str):
        super().__init__(api_base, api_key, model_name)
        self.llm = ChatOpenAI(
            model=model_name,
            base_url=api_base,
            api_key=api_key or "not-needed",  # type: ignore
            temperature=self.temperature,
        )

    async def chat(
        self,
        messages: List[BaseMessage],
        json_schema: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> ProviderResponse:
        """Send chat request to an OpenAI-compatible endpoint"""
        call_id = self._log_llm_call(messages, json_schema)
        start_time = time.time()

        try:
            if json_schema is not None:
                # with_structured_output can take a dict JSON schema
                structured_llm = self.llm.with_structured_output(json_schema)
                structured = await structured_llm.ainvoke(messages)
                response = ProviderResponse(
                    content=json.dumps(structured),
                    model=self.model_name,
                )
            else:
                result = await self.llm.ainvoke(messages)
                content = result.content if hasattr(result, "content") else str(result)
                response = ProviderResponse(
                    content=str(content),
                    usage=getattr(result, "usage_metadata", None),
                    model=self.model_name,
                )
        except Exception as e:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            self._log_llm_response(call_id, None, duration_ms, error=e)
            raise Exception(f"{self._error_label} API error: {e}") from e

        duration_ms = round((time.time() - start_time) * 1000, 2)
        self._log_llm_response(call_id, response, duration_ms)
        return response

    @property
    def _error_label(self) -> str:
        return "Generic"

    async def health_check(self) -> bool:
        """Check if the endpoint is accessible"""
        try:
            await self.llm.ainvoke([HumanMessage(content="Hello")])
            return True
        except Exception as e:
            logger.warning(f"{self._error_label} health check failed: {e}")
            return False
