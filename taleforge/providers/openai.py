"""
OpenAI provider implementation using LangChain
"""

from langchain_openai import ChatOpenAI

from taleforge.utils.logger import get_logger

from .generic import GenericProvider

logger = get_logger(__name__)

# Reasoning models reject a custom temperature
_FIXED_TEMPERATURE_PREFIXES = ("o1", "o3", "o4", "gpt-5")


class OpenAIProvider(GenericProvider):
    """OpenAI API provider; structured output goes through JSON schema mode"""

    def __init__(self, api_base: str, api_key: str, model_name: str):
        super().__init__(api_base, api_key, model_name)

        if model_name.startswith(_FIXED_TEMPERATURE_PREFIXES):
            self.llm = ChatOpenAI(
                model=model_name,
                base_url=api_base,
                api_key=api_key,  # type: ignore
            )

        logger.info(f"Initialized OpenAI provider for {model_name}")

    @property
    def _error_label(self) -> str:
        return "OpenAI"
